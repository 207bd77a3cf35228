"""
Vector3 publisher and subscriber.

The publisher traces a circle in the xy plane so that a live plot of the
topic shows two phase-shifted sine waves.
"""
import numpy as np

from nodebus.core.context import Context
from nodebus.core.messages import Vector3
from nodebus.core.node import Node
from nodebus.utils.constants import DEFAULT_TIMER_PERIOD, TOPIC_VECTOR


class VectorPublisher:
    """Publishes a point moving on a circle of ``radius`` at ``angular_speed`` rad/s."""

    def __init__(self, context: Context, topic: str = TOPIC_VECTOR,
                 period: float = DEFAULT_TIMER_PERIOD, radius: float = 1.0,
                 angular_speed: float = 0.5, name: str = "vector_publisher"):
        self.node = Node(name, context)
        self.publisher = self.node.advertise(topic, Vector3, 10)
        self.timer = self.node.create_timer(period, self.timer_callback)
        self.radius = radius
        self.step = angular_speed * period
        self.i = 0

    def next_point(self) -> Vector3:
        angle = self.i * self.step
        return Vector3.from_array([self.radius * np.cos(angle), self.radius * np.sin(angle), 0.0])

    def timer_callback(self) -> None:
        msg = self.next_point()
        self.publisher.publish(msg)
        self.node.get_logger().info(f"Publishing: x={msg.x:.3f} y={msg.y:.3f} z={msg.z:.3f}")
        self.i += 1


class VectorSubscriber:
    """Logs each received vector and its norm."""

    def __init__(self, context: Context, topic: str = TOPIC_VECTOR, name: str = "vector_subscriber"):
        self.node = Node(name, context)
        self.subscription = self.node.subscribe(topic, Vector3, self.listener_callback, 10)
        self.received = 0

    def listener_callback(self, msg: Vector3) -> None:
        self.received += 1
        norm = float(np.linalg.norm(msg.as_array()))
        self.node.get_logger().info(f"I heard: x={msg.x:.3f} y={msg.y:.3f} z={msg.z:.3f} (|v|={norm:.3f})")
