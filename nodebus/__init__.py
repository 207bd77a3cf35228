# nodebus/__init__.py

from .core import (
    Message, Text, Vector3, ColorNumber, MessageRegistry, registry, define, encode, decode,
    TopicBus, Publisher, Subscription, Timer, Context, Node, NodeThread, NodeInterface,
)

__version__ = "0.1.0"

__all__ = [
    'Message', 'Text', 'Vector3', 'ColorNumber',
    'MessageRegistry', 'registry', 'define', 'encode', 'decode',
    'TopicBus', 'Publisher', 'Subscription',
    'Timer', 'Context', 'Node', 'NodeThread', 'NodeInterface',
]
