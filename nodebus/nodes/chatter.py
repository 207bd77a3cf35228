"""
Talker / listener pair: a timer-driven string publisher and a callback-driven
subscriber on the same topic.
"""
from typing import Optional

from nodebus.core.context import Context
from nodebus.core.messages import Text
from nodebus.core.node import Node
from nodebus.utils.constants import DEFAULT_TIMER_PERIOD, TOPIC_CHATTER


class MinimalPublisher:
    """Publishes "Hello World: <count>" every period."""

    def __init__(self, context: Context, topic: str = TOPIC_CHATTER,
                 period: float = DEFAULT_TIMER_PERIOD, name: str = "minimal_publisher"):
        self.node = Node(name, context)
        self.publisher = self.node.advertise(topic, Text, 10)
        self.timer = self.node.create_timer(period, self.timer_callback)
        self.i = 0

    def timer_callback(self) -> None:
        msg = Text(data=f"Hello World: {self.i}")
        self.publisher.publish(msg)
        self.node.get_logger().info(f'Publishing: "{msg.data}"')
        self.i += 1


class MinimalSubscriber:
    """Logs every string received on the topic."""

    def __init__(self, context: Context, topic: str = TOPIC_CHATTER,
                 name: str = "minimal_subscriber"):
        self.node = Node(name, context)
        self.subscription = self.node.subscribe(topic, Text, self.listener_callback, 10)
        self.last: Optional[Text] = None

    def listener_callback(self, msg: Text) -> None:
        self.last = msg
        self.node.get_logger().info(f'I heard: "{msg.data}"')
