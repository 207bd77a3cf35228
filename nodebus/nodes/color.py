"""
Sensor / actuator pair exchanging ColorNumber messages.

The sensor stands in for a color sensor with a numeric reading; the actuator
stands in for an LED driver that would act on each reading.
"""
import itertools
from typing import Dict, Optional, Sequence

from nodebus.core.context import Context
from nodebus.core.messages import ColorNumber
from nodebus.core.node import Node
from nodebus.utils.constants import TOPIC_COLOR

DEFAULT_COLORS = ("red", "green", "blue")


class ColorSensor:
    """Cycles through ``colors`` and publishes an increasing reading with each one."""

    def __init__(self, context: Context, topic: str = TOPIC_COLOR, period: float = 1.0,
                 colors: Sequence[str] = DEFAULT_COLORS, name: str = "color_sensor"):
        self.node = Node(name, context)
        self.publisher = self.node.advertise(topic, ColorNumber, 10)
        self.timer = self.node.create_timer(period, self.timer_callback)
        self._colors = itertools.cycle(colors)
        self.reading = 0.0

    def timer_callback(self) -> None:
        msg = ColorNumber(color=next(self._colors), number=self.reading)
        self.publisher.publish(msg)
        self.node.get_logger().info(f"Publishing: color={msg.color} number={msg.number}")
        self.reading += 1.0


class LedActuator:
    """Applies each received color/reading to a (simulated) LED."""

    def __init__(self, context: Context, topic: str = TOPIC_COLOR, name: str = "led_actuator"):
        self.node = Node(name, context)
        self.subscription = self.node.subscribe(topic, ColorNumber, self.listener_callback, 10)
        self.state: Optional[ColorNumber] = None
        self.counts: Dict[str, int] = {}

    def listener_callback(self, msg: ColorNumber) -> None:
        self.state = msg
        self.counts[msg.color] = self.counts.get(msg.color, 0) + 1
        self.node.get_logger().info(f"Setting LED to {msg.color} at {msg.number}")
