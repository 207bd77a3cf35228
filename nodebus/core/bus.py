"""
In-process Topic Bus for nodebus.

Binds topic names to exactly one message type and routes every published
message to the subscriptions registered on the same topic at publish time.

Thread-safe. The binding table is guarded by a single lock which is never
held while a node's delivery queue is touched or a callback runs. Delivery
is decoupled from publish: messages are queued on the node owning each
subscription and the callbacks run later, when that node spins.
"""
import itertools
import re
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple, Type

from nodebus.core.messages import Message, MessageRegistry, registry as default_registry
from nodebus.core.protocols import DeliveryTarget
from nodebus.utils.constants import DEFAULT_QUEUE_DEPTH
from nodebus.utils.failures import HandleDestroyed, InvalidField, InvalidName, TypeConflict, TypeMismatch
from nodebus.utils.logger import Logger


TOPIC_NAME_RE = re.compile(r"^/?[A-Za-z_][A-Za-z0-9_]*(/[A-Za-z_][A-Za-z0-9_]*)*$")


def resolve_topic_name(name: str) -> str:
    """Validate a topic name and make it absolute ("topic" -> "/topic")."""
    if not isinstance(name, str) or not TOPIC_NAME_RE.match(name):
        raise InvalidName(f"Invalid topic name: {name!r}")
    return name if name.startswith("/") else "/" + name


def check_queue_depth(depth: int) -> int:
    if isinstance(depth, bool) or not isinstance(depth, int) or depth < 1:
        raise ValueError(f"queue_depth must be an int >= 1, got {depth!r}")
    return depth


def _check_message_type(msg_type) -> None:
    if not (isinstance(msg_type, type) and issubclass(msg_type, Message)):
        raise InvalidField(f"{msg_type!r} is not a message type")


class Publisher:
    """Handle for sending messages on one topic. Owned by the node that created it."""

    def __init__(self, bus: "TopicBus", topic: str, msg_type: Type[Message],
                 node=None, queue_depth: int = DEFAULT_QUEUE_DEPTH):
        self.bus = bus
        self.topic = topic
        self.msg_type = msg_type
        self.node = node
        self.queue_depth = queue_depth
        self._destroyed = False

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def publish(self, message: Message) -> None:
        self.bus.publish(self, message)

    def destroy(self) -> None:
        if self.node is not None:
            self.node.destroy_publisher(self)
        else:
            self.bus.remove_publisher(self)

    def __repr__(self):
        return f"Publisher({self.topic}, {self.msg_type.__name__})"


class Subscription:
    """
    Handle for receiving messages on one topic.

    ``pending`` is a keep-last queue of (sequence, message) pairs waiting for
    the owning node to spin. It is only touched under that node's lock.
    """

    def __init__(self, bus: "TopicBus", topic: str, msg_type: Type[Message],
                 callback: Callable[[Message], None], node: DeliveryTarget,
                 queue_depth: int = DEFAULT_QUEUE_DEPTH):
        self.bus = bus
        self.topic = topic
        self.msg_type = msg_type
        self.callback = callback
        self.node = node
        self.queue_depth = queue_depth
        self.pending: deque = deque(maxlen=queue_depth)
        self.delivered = 0
        self.dropped = 0
        self._destroyed = False

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def destroy(self) -> None:
        self.node.destroy_subscription(self)

    def __repr__(self):
        return f"Subscription({self.topic}, {self.msg_type.__name__})"


@dataclass
class _Topic:
    name: str
    msg_type: Type[Message]
    publishers: List[Publisher] = field(default_factory=list)
    subscriptions: List[Subscription] = field(default_factory=list)

    @property
    def unused(self) -> bool:
        return not self.publishers and not self.subscriptions


class TopicBus:
    """
    Topic name -> (message type, endpoints) routing table.

    Usage:
        bus = TopicBus()
        pub = bus.advertise("chatter", Text)
        bus.subscribe("chatter", Text, callback, node)
        pub.publish(Text(data="hello"))
    """

    def __init__(self, registry: Optional[MessageRegistry] = None, serialize_in_transit: bool = False):
        """
        Args:
            registry: Message registry used for serialize-in-transit.
            serialize_in_transit: Encode each published message once and hand
                                  subscribers the decoded copy.
        """
        self.registry = registry or default_registry
        self.serialize_in_transit = serialize_in_transit
        self._topics: Dict[str, _Topic] = {}
        self._lock = threading.Lock()
        self._sequence = itertools.count()
        self.logger = Logger("TopicBus")

    def _bind(self, name: str, msg_type: Type[Message]) -> _Topic:
        """Return the topic bound to ``msg_type``, creating it if needed. Caller holds the lock."""
        topic = self._topics.get(name)
        if topic is None:
            topic = _Topic(name, msg_type)
            self._topics[name] = topic
            self.logger.debug(f"Topic {name} bound to {msg_type.__name__}")
        elif topic.msg_type is not msg_type:
            raise TypeConflict(
                f"Topic {name} carries {topic.msg_type.__name__}, not {msg_type.__name__}"
            )
        return topic

    def _release(self, topic: _Topic) -> None:
        """Forget a topic once nothing references it. Caller holds the lock."""
        if topic.unused and self._topics.get(topic.name) is topic:
            del self._topics[topic.name]
            self.logger.debug(f"Topic {topic.name} removed")

    def advertise(self, topic: str, msg_type: Type[Message], node=None,
                  queue_depth: int = DEFAULT_QUEUE_DEPTH) -> Publisher:
        """
        Create a publisher on ``topic``.

        Raises:
            TypeConflict: the topic is already bound to another message type.
        """
        name = resolve_topic_name(topic)
        _check_message_type(msg_type)
        check_queue_depth(queue_depth)

        with self._lock:
            bound = self._bind(name, msg_type)
            publisher = Publisher(self, name, msg_type, node, queue_depth)
            bound.publishers.append(publisher)
        return publisher

    def subscribe(self, topic: str, msg_type: Type[Message], callback: Callable[[Message], None],
                  node: DeliveryTarget, queue_depth: int = DEFAULT_QUEUE_DEPTH) -> Subscription:
        """
        Register ``callback`` for messages on ``topic``. Deliveries are queued on ``node``.

        Raises:
            TypeConflict: the topic is already bound to another message type.
        """
        name = resolve_topic_name(topic)
        _check_message_type(msg_type)
        check_queue_depth(queue_depth)
        if not callable(callback):
            raise TypeError(f"Subscription callback must be callable, got {callback!r}")

        with self._lock:
            bound = self._bind(name, msg_type)
            subscription = Subscription(self, name, msg_type, callback, node, queue_depth)
            bound.subscriptions.append(subscription)
        return subscription

    def publish(self, publisher: Publisher, message: Message) -> None:
        """
        Queue ``message`` for every subscription currently on the publisher's topic.

        Returns without running any callback.

        Raises:
            HandleDestroyed: the publisher was destroyed.
            TypeMismatch: ``message`` is not of the publisher's bound type.
        """
        if publisher.destroyed:
            raise HandleDestroyed(f"{publisher!r} was destroyed")
        if type(message) is not publisher.msg_type:
            raise TypeMismatch(
                f"{publisher.topic} publishes {publisher.msg_type.__name__}, "
                f"got {type(message).__name__}"
            )

        with self._lock:
            topic = self._topics.get(publisher.topic)
            subscriptions = list(topic.subscriptions) if topic is not None else []
            sequence = next(self._sequence)

        self.logger.debug(
            f"Publishing {publisher.msg_type.__name__} #{sequence} on {publisher.topic} "
            f"to {len(subscriptions)} subscriber(s)"
        )
        if not subscriptions:
            return

        if self.serialize_in_transit:
            message = self.registry.decode(self.registry.encode(message), publisher.msg_type)

        for subscription in subscriptions:
            subscription.node.enqueue(subscription, sequence, message, publisher.queue_depth)

    def remove_publisher(self, publisher: Publisher) -> bool:
        """Detach a publisher. Returns False if it was already removed."""
        with self._lock:
            if publisher._destroyed:
                return False
            publisher._destroyed = True
            topic = self._topics.get(publisher.topic)
            if topic is not None and publisher in topic.publishers:
                topic.publishers.remove(publisher)
                self._release(topic)
        return True

    def remove_subscription(self, subscription: Subscription) -> bool:
        """Detach a subscription. Returns False if it was already removed."""
        with self._lock:
            if subscription._destroyed:
                return False
            subscription._destroyed = True
            topic = self._topics.get(subscription.topic)
            if topic is not None and subscription in topic.subscriptions:
                topic.subscriptions.remove(subscription)
                self._release(topic)
        return True

    def clear(self) -> None:
        """Detach every endpoint and forget all topics."""
        with self._lock:
            for topic in self._topics.values():
                for publisher in topic.publishers:
                    publisher._destroyed = True
                for subscription in topic.subscriptions:
                    subscription._destroyed = True
            self._topics.clear()

    # ── Introspection ────────────────────────────────────────────────

    def topic_names_and_types(self) -> List[Tuple[str, str]]:
        """Sorted (topic name, message type name) pairs of every live topic."""
        with self._lock:
            return sorted((name, topic.msg_type.__name__) for name, topic in self._topics.items())

    def topic_type(self, topic: str) -> Optional[Type[Message]]:
        """Message type bound to ``topic``, or None if the topic does not exist."""
        name = resolve_topic_name(topic)
        with self._lock:
            bound = self._topics.get(name)
            return bound.msg_type if bound is not None else None

    def count_publishers(self, topic: str) -> int:
        name = resolve_topic_name(topic)
        with self._lock:
            bound = self._topics.get(name)
            return len(bound.publishers) if bound is not None else 0

    def count_subscribers(self, topic: str) -> int:
        name = resolve_topic_name(topic)
        with self._lock:
            bound = self._topics.get(name)
            return len(bound.subscriptions) if bound is not None else 0
