"""
Process-wide runtime context.

Holds what a real middleware keeps as hidden global state: the topic bus,
the message registry, the configuration and the nodes created in it. The
context is created and passed explicitly; ``init()`` must run before any
node is created and ``shutdown()`` destroys every node and releases the bus.
"""
import threading
from typing import List, Optional

from nodebus.core.bus import TopicBus
from nodebus.core.messages import MessageRegistry, registry as default_registry
from nodebus.utils.config import Config
from nodebus.utils.failures import NotInitialized
from nodebus.utils.logger import Logger


class Context:
    """
    Explicit runtime state shared by the nodes of one process.

    Usage:
        with Context(config) as ctx:
            node = Node("talker", ctx)
            ...
    """

    def __init__(self, config: Optional[Config] = None, registry: Optional[MessageRegistry] = None):
        self.config = config or Config()
        self.registry = registry or default_registry
        self.bus: Optional[TopicBus] = None
        self.logger = Logger("Context")
        self._nodes: List = []
        self._lock = threading.Lock()
        self._initialized = False
        self._shutdown = False

    def init(self) -> "Context":
        """Create the topic bus. Calling init on a live context does nothing."""
        with self._lock:
            if self._initialized and not self._shutdown:
                return self
            self.bus = TopicBus(
                self.registry,
                serialize_in_transit=self.config.get_bool('bus.serialize_in_transit', False),
            )
            self._nodes = []
            self._initialized = True
            self._shutdown = False
        self.logger.debug("Context initialised")
        return self

    def ok(self) -> bool:
        return self._initialized and not self._shutdown

    def add_node(self, node) -> None:
        with self._lock:
            if not (self._initialized and not self._shutdown):
                raise NotInitialized(f"Cannot add node '{node.name}': context is not initialised")
            self._nodes.append(node)

    def remove_node(self, node) -> None:
        with self._lock:
            if node in self._nodes:
                self._nodes.remove(node)

    @property
    def nodes(self) -> List:
        with self._lock:
            return list(self._nodes)

    def shutdown(self) -> None:
        """Destroy every node and release the bus. Idempotent."""
        with self._lock:
            if not self._initialized or self._shutdown:
                return
            self._shutdown = True
            nodes = list(self._nodes)

        for node in nodes:
            node.destroy()
        if self.bus is not None:
            self.bus.clear()
        self.logger.debug(f"Context shut down ({len(nodes)} node(s) destroyed)")

    def __enter__(self) -> "Context":
        return self.init()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()
