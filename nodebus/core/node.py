"""
Node runtime: the unit of execution owning publishers, subscriptions and timers.

Each node runs a cooperative, single-threaded event loop. One iteration
delivers every queued message (oldest first) and then fires the timers whose
slot has come; when nothing is ready the loop sleeps on a condition variable
until the next timer deadline, a new delivery, or shutdown. Callbacks never
run while a lock is held.
"""
import re
import threading
import time
from typing import Callable, List, Optional, Tuple, Type

from nodebus.core.bus import Publisher, Subscription
from nodebus.core.messages import Message
from nodebus.core.timer import Timer, check_period
from nodebus.utils.constants import DEFAULT_QUEUE_DEPTH
from nodebus.utils.failures import FailureManager, HandleDestroyed, InvalidName, NotInitialized
from nodebus.utils.logger import Logger


NODE_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class Node:
    """
    A named node bound to a runtime context.

    Usage:
        with Context() as ctx:
            node = Node("talker", ctx)
            pub = node.advertise("topic", Text)
            node.create_timer(0.5, lambda: pub.publish(Text(data="hi")))
            node.spin()
    """

    def __init__(self, name: str, context, clock: Optional[Callable[[], float]] = None):
        """
        Args:
            name: Node name (letters, digits, underscores).
            context: An initialised Context; the node registers itself in it.
            clock: Monotonic time source for timers; defaults to time.monotonic.
        """
        if not isinstance(name, str) or not NODE_NAME_RE.match(name):
            raise InvalidName(f"Invalid node name: {name!r}")
        if context is None or not context.ok():
            raise NotInitialized(f"Cannot create node '{name}': context is not initialised")

        self.name = name
        self.context = context
        self.bus = context.bus
        self.clock = clock or time.monotonic
        self.logger = Logger(name)
        self.failures = FailureManager(context.config.get('failures', {}), name=name)
        self.default_queue_depth = context.config.get_int('bus.default_queue_depth', DEFAULT_QUEUE_DEPTH)

        self._wakeup = threading.Condition()
        self._publishers: List[Publisher] = []
        self._subscriptions: List[Subscription] = []
        self._timers: List[Timer] = []
        self._shutdown_requested = False
        self._destroyed = False

        context.add_node(self)
        self.logger.debug("Node created")

    def get_logger(self) -> Logger:
        return self.logger

    def ok(self) -> bool:
        return not self._shutdown_requested and not self._destroyed and self.context.ok()

    def _check_alive(self) -> None:
        if self._destroyed:
            raise HandleDestroyed(f"Node '{self.name}' was destroyed")

    # ── Endpoints ───────────────────────────────────────────────────

    def advertise(self, topic: str, msg_type: Type[Message], queue_depth: Optional[int] = None) -> Publisher:
        """Create a publisher owned by this node."""
        self._check_alive()
        depth = self.default_queue_depth if queue_depth is None else queue_depth
        publisher = self.bus.advertise(topic, msg_type, node=self, queue_depth=depth)
        with self._wakeup:
            self._publishers.append(publisher)
        self.logger.debug(f"Advertising {publisher.topic} [{msg_type.__name__}]")
        return publisher

    def subscribe(self, topic: str, msg_type: Type[Message], callback: Callable[[Message], None],
                  queue_depth: Optional[int] = None) -> Subscription:
        """Create a subscription owned by this node; ``callback`` runs when the node spins."""
        self._check_alive()
        depth = self.default_queue_depth if queue_depth is None else queue_depth
        subscription = self.bus.subscribe(topic, msg_type, callback, node=self, queue_depth=depth)
        with self._wakeup:
            self._subscriptions.append(subscription)
        self.logger.debug(f"Subscribed to {subscription.topic} [{msg_type.__name__}]")
        return subscription

    def create_timer(self, period: float, callback: Callable[[], None]) -> Timer:
        """
        Run ``callback`` every ``period`` seconds while spinning.

        Raises:
            InvalidPeriod: ``period`` is not a positive finite number.
        """
        self._check_alive()
        check_period(period)
        if not callable(callback):
            raise TypeError(f"Timer callback must be callable, got {callback!r}")
        timer = Timer(period, callback, clock=self.clock, node=self)
        with self._wakeup:
            self._timers.append(timer)
            self._wakeup.notify_all()
        return timer

    def destroy_publisher(self, publisher: Publisher) -> None:
        self.bus.remove_publisher(publisher)
        with self._wakeup:
            if publisher in self._publishers:
                self._publishers.remove(publisher)

    def destroy_subscription(self, subscription: Subscription) -> None:
        """Detach ``subscription``; its pending deliveries are never run."""
        self.bus.remove_subscription(subscription)
        with self._wakeup:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)
            subscription.pending.clear()

    def destroy_timer(self, timer: Timer) -> None:
        timer.cancel()
        with self._wakeup:
            if timer in self._timers:
                self._timers.remove(timer)

    @property
    def publishers(self) -> List[Publisher]:
        with self._wakeup:
            return list(self._publishers)

    @property
    def subscriptions(self) -> List[Subscription]:
        with self._wakeup:
            return list(self._subscriptions)

    @property
    def timers(self) -> List[Timer]:
        with self._wakeup:
            return list(self._timers)

    # ── Delivery ────────────────────────────────────────────────────

    def enqueue(self, subscription: Subscription, sequence: int, message: Message,
                depth: Optional[int] = None) -> None:
        """
        Queue a delivery for one of this node's subscriptions (called by the bus).

        At most ``depth`` (the publisher's queue depth) messages stay pending,
        never more than the subscription's own depth; the oldest go first.
        """
        limit = subscription.queue_depth if depth is None else min(depth, subscription.queue_depth)
        with self._wakeup:
            if subscription.destroyed or self._destroyed:
                return
            while len(subscription.pending) >= limit:
                subscription.pending.popleft()
                subscription.dropped += 1
                self.logger.debug(f"Queue full on {subscription.topic}, dropping oldest message")
            subscription.pending.append((sequence, message))
            self._wakeup.notify_all()

    def wake(self) -> None:
        """Wake a blocked spin so it re-evaluates timers and deliveries."""
        with self._wakeup:
            self._wakeup.notify_all()

    def _has_pending(self) -> bool:
        return any(subscription.pending for subscription in self._subscriptions)

    def _take_deliveries(self) -> List[Tuple[int, Subscription, Message]]:
        with self._wakeup:
            jobs = []
            for subscription in self._subscriptions:
                while subscription.pending:
                    sequence, message = subscription.pending.popleft()
                    jobs.append((sequence, subscription, message))
        jobs.sort(key=lambda job: job[0])
        return jobs

    def _due_timers(self) -> List[Timer]:
        now = self.clock()
        with self._wakeup:
            due = [timer for timer in self._timers if timer.is_ready(now)]
        due.sort(key=lambda timer: timer.next_call_time)
        return due

    def _run_callback(self, callback: Callable, *args, where: str = "") -> bool:
        """Run a user callback; failures are logged and recorded, never raised."""
        try:
            callback(*args)
            return True
        except Exception as e:
            self.failures.record_failure(e, context=where)
            return False

    def _execute_ready(self) -> int:
        executed = 0

        for _, subscription, message in self._take_deliveries():
            if self._shutdown_requested:
                break
            if subscription.destroyed:
                continue
            self._run_callback(subscription.callback, message, where=f"subscription on {subscription.topic}")
            subscription.delivered += 1
            executed += 1

        for timer in self._due_timers():
            if self._shutdown_requested:
                break
            if timer.is_canceled():
                continue
            timer.advance(self.clock())
            self._run_callback(timer.callback, where=f"timer ({timer.period}s)")
            executed += 1

        return executed

    def _wait_for_work(self, timeout: Optional[float]) -> None:
        with self._wakeup:
            if self._shutdown_requested or self._has_pending():
                return
            now = self.clock()
            waits = [max(0.0, timer.next_call_time - now) for timer in self._timers if not timer.is_canceled()]
            wait = min(waits) if waits else None
            if timeout is not None:
                wait = timeout if wait is None else min(wait, timeout)
            if wait is None or wait > 0:
                self._wakeup.wait(wait)

    # ── Event loop ──────────────────────────────────────────────────

    def spin_once(self, timeout: Optional[float] = None) -> int:
        """
        Run one loop iteration.

        Delivers every queued message and fires due timers. If nothing was
        ready, blocks until work arrives, the next timer deadline, shutdown
        or ``timeout`` seconds, then runs whatever became ready.

        Returns:
            Number of callbacks executed.
        """
        if self._shutdown_requested or self._destroyed:
            return 0

        executed = self._execute_ready()
        if executed:
            return executed

        self._wait_for_work(timeout)
        if self._shutdown_requested:
            return 0
        return self._execute_ready()

    def spin(self) -> None:
        """Run the event loop until shutdown is requested or the process is interrupted."""
        self._check_alive()
        self.logger.debug("Spinning")
        try:
            while not self._shutdown_requested and self.context.ok():
                self.spin_once()
        except KeyboardInterrupt:
            self.logger.info("Interrupted, shutting down")
            self.shutdown()
        self.logger.debug("Spin stopped")

    def shutdown(self) -> None:
        """Request the loop to exit after the in-flight callback. Idempotent."""
        with self._wakeup:
            if self._shutdown_requested:
                return
            self._shutdown_requested = True
            for timer in self._timers:
                timer.cancel()
            self._wakeup.notify_all()

    def destroy(self) -> None:
        """Shut down and release every publisher, subscription and timer."""
        if self._destroyed:
            return
        self.shutdown()

        for publisher in self.publishers:
            self.destroy_publisher(publisher)
        for subscription in self.subscriptions:
            self.destroy_subscription(subscription)
        for timer in self.timers:
            self.destroy_timer(timer)

        with self._wakeup:
            self._destroyed = True
            self._wakeup.notify_all()
        self.context.remove_node(self)
        self.logger.debug("Node destroyed")

    # ── Introspection ───────────────────────────────────────────────

    def count_publishers(self, topic: str) -> int:
        return self.bus.count_publishers(topic)

    def count_subscribers(self, topic: str) -> int:
        return self.bus.count_subscribers(topic)

    def __repr__(self):
        return f"Node({self.name!r})"
