"""
Core of nodebus: message registry, topic bus and node runtime.

Contains the typed messages and their codec, the topic routing table,
nodes with their timers and event loop, the runtime context and the
protocol definitions (interfaces) the tools rely on.
"""
from .messages import (
    Message, Text, Vector3, ColorNumber, MessageRegistry, registry, define, encode, decode,
)
from .bus import TopicBus, Publisher, Subscription
from .timer import Timer
from .context import Context
from .node import Node
from .executor import NodeThread
from .protocols import NodeInterface

__all__ = [
    "Message", "Text", "Vector3", "ColorNumber",
    "MessageRegistry", "registry", "define", "encode", "decode",
    "TopicBus", "Publisher", "Subscription",
    "Timer", "Context", "Node", "NodeThread", "NodeInterface",
]
