"""
Topic observers: list, info, echo and hz.

These sit on top of the public bus/node API exactly like any other client:
they create their own node and subscribe, they do not reach into the core.
"""
import sys
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, List, Optional, TextIO, Type

import numpy as np

from nodebus.core.bus import TopicBus
from nodebus.core.context import Context
from nodebus.core.messages import Message
from nodebus.core.node import Node
from nodebus.utils.constants import DEFAULT_HZ_WINDOW
from nodebus.utils.failures import UnknownTopic


def list_topics(bus: TopicBus, show_types: bool = False) -> List[str]:
    """One line per live topic, optionally followed by its message type."""
    return [
        f"{name} [{type_name}]" if show_types else name
        for name, type_name in bus.topic_names_and_types()
    ]


def topic_info(bus: TopicBus, topic: str) -> str:
    msg_type = lookup_type(bus, topic)
    return (
        f"Type: {msg_type.__name__}\n"
        f"Publisher count: {bus.count_publishers(topic)}\n"
        f"Subscription count: {bus.count_subscribers(topic)}"
    )


def lookup_type(bus: TopicBus, topic: str, msg_type: Optional[Type[Message]] = None) -> Type[Message]:
    """The message type to observe ``topic`` with: the given one, or the bound one."""
    if msg_type is not None:
        return msg_type
    bound = bus.topic_type(topic)
    if bound is None:
        raise UnknownTopic(f"Topic {topic} does not exist")
    return bound


def format_message(msg: Message) -> str:
    """YAML-like dump of a message, terminated by a '---' line."""
    lines = []
    for name, value in msg.to_dict().items():
        if isinstance(value, str):
            lines.append(f"{name}: '{value}'")
        else:
            lines.append(f"{name}: {value}")
    lines.append("---")
    return "\n".join(lines)


class TopicEcho:
    """Prints every message received on a topic."""

    def __init__(self, context: Context, topic: str, msg_type: Optional[Type[Message]] = None,
                 max_messages: Optional[int] = None, out: TextIO = None, name: str = "topic_echo"):
        """
        Args:
            context: Runtime context holding the bus.
            topic: Topic to observe.
            msg_type: Type to subscribe with; defaults to the topic's bound type.
            max_messages: Shut the node down after this many messages.
            out: Stream to print to (stdout by default).
        """
        self.node = Node(name, context)
        self.out = out or sys.stdout
        self.max_messages = max_messages
        self.count = 0
        self.subscription = self.node.subscribe(
            topic, lookup_type(context.bus, topic, msg_type), self._on_message
        )

    def _on_message(self, msg: Message) -> None:
        self.count += 1
        print(format_message(msg), file=self.out, flush=True)
        if self.max_messages is not None and self.count >= self.max_messages:
            self.node.shutdown()


@dataclass(frozen=True)
class RateStats:
    rate: float
    min_period: float
    max_period: float
    std_dev: float
    window: int

    def __str__(self):
        return (
            f"average rate: {self.rate:.3f}\n"
            f"\tmin: {self.min_period:.3f}s max: {self.max_period:.3f}s "
            f"std dev: {self.std_dev:.5f}s window: {self.window}"
        )


class TopicHz:
    """Measures the receive rate of a topic over a sliding window of arrivals."""

    def __init__(self, context: Context, topic: str, msg_type: Optional[Type[Message]] = None,
                 window: int = DEFAULT_HZ_WINDOW, clock: Optional[Callable[[], float]] = None,
                 name: str = "topic_hz"):
        self.clock = clock or time.monotonic
        self.node = Node(name, context, clock=self.clock)
        self._arrivals: deque = deque(maxlen=window + 1)
        self.subscription = self.node.subscribe(
            topic, lookup_type(context.bus, topic, msg_type), self._on_message, queue_depth=window
        )

    def _on_message(self, msg: Message) -> None:
        self._arrivals.append(self.clock())

    def stats(self) -> Optional[RateStats]:
        """Rate statistics, or None until two messages have arrived."""
        if len(self._arrivals) < 2:
            return None
        periods = np.diff(np.asarray(self._arrivals, dtype=np.float64))
        mean = float(periods.mean())
        return RateStats(
            rate=1.0 / mean if mean > 0 else float("inf"),
            min_period=float(periods.min()),
            max_period=float(periods.max()),
            std_dev=float(periods.std()),
            window=int(periods.size),
        )

    def report(self) -> str:
        stats = self.stats()
        return str(stats) if stats is not None else "no new messages"
