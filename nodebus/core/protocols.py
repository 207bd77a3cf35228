"""
Protocol definitions (interfaces) for nodebus.

These define the contracts the runtime and the observers rely on,
so nodes can be swapped or faked in tests.
"""
from typing import Any, Callable, Optional, Protocol, runtime_checkable


@runtime_checkable
class NodeInterface(Protocol):
    """Capabilities of a node: endpoints, timers and its event loop."""

    def advertise(self, topic: str, msg_type: type, queue_depth: Optional[int] = None) -> Any:
        """Create a publisher bound to ``topic``."""
        ...

    def subscribe(self, topic: str, msg_type: type, callback: Callable[[Any], None],
                  queue_depth: Optional[int] = None) -> Any:
        """Create a subscription whose callback runs when the node spins."""
        ...

    def create_timer(self, period: float, callback: Callable[[], None]) -> Any:
        """Run ``callback`` every ``period`` seconds while spinning."""
        ...

    def spin(self) -> None:
        """Run the event loop until shutdown."""
        ...

    def shutdown(self) -> None:
        """Ask the event loop to exit after the in-flight callback."""
        ...


@runtime_checkable
class DeliveryTarget(Protocol):
    """Anything that can queue deliveries for a subscription (a node)."""

    def enqueue(self, subscription: Any, sequence: int, message: Any, depth: Optional[int] = None) -> None:
        """Queue ``message`` for ``subscription``, keeping at most ``depth`` pending; must not run the callback."""
        ...

    def destroy_subscription(self, subscription: Any) -> None:
        """Detach ``subscription`` and discard its pending deliveries."""
        ...
