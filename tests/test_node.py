"""Node runtime: delivery, ordering, cancellation, failures and lifecycle."""
import threading

import pytest

from nodebus.core.context import Context
from nodebus.core.executor import NodeThread
from nodebus.core.messages import ColorNumber, Text, Vector3
from nodebus.core.node import Node
from nodebus.core.protocols import NodeInterface
from nodebus.utils.failures import HandleDestroyed, InvalidName, InvalidPeriod, NotInitialized, TypeConflict


def test_vector_between_two_nodes(context):
    received = []
    node_a = Node("a", context)
    node_b = Node("b", context)
    publisher = node_a.advertise("v", Vector3, 10)
    node_b.subscribe("v", Vector3, received.append, 10)

    publisher.publish(Vector3(x=1, y=2, z=0.0))

    assert node_a.spin_once(timeout=0) == 0
    assert node_b.spin_once(timeout=0) == 1
    assert node_b.spin_once(timeout=0) == 0
    assert received == [Vector3(x=1.0, y=2.0, z=0.0)]


def test_messages_arrive_in_publish_order(context):
    received = []
    node = Node("a", context)
    publisher = node.advertise("topic", Text)
    node.subscribe("topic", Text, lambda msg: received.append(msg.data))

    for i in range(5):
        publisher.publish(Text(data=f"m{i}"))
    node.spin_once(timeout=0)

    assert received == ["m0", "m1", "m2", "m3", "m4"]


def test_deliveries_across_topics_are_oldest_first(context):
    received = []
    node = Node("a", context)
    text_pub = node.advertise("text", Text)
    color_pub = node.advertise("color", ColorNumber)
    node.subscribe("text", Text, lambda msg: received.append(msg.data))
    node.subscribe("color", ColorNumber, lambda msg: received.append(msg.color))

    color_pub.publish(ColorNumber(color="red", number=1))
    text_pub.publish(Text(data="hello"))
    color_pub.publish(ColorNumber(color="blue", number=2))
    node.spin_once(timeout=0)

    assert received == ["red", "hello", "blue"]


def test_destroyed_subscription_never_fires(context):
    received = []
    node = Node("a", context)
    publisher = node.advertise("topic", Text)
    subscription = node.subscribe("topic", Text, received.append)

    publisher.publish(Text(data="pending"))
    subscription.destroy()
    node.spin_once(timeout=0)

    assert received == []
    assert subscription.destroyed


def test_subscription_destroyed_by_earlier_callback_in_same_batch(context):
    received = []
    node = Node("a", context)
    publisher = node.advertise("topic", Text)
    victim = None

    def first(msg):
        received.append("first")
        victim.destroy()

    node.subscribe("topic", Text, first)
    victim = node.subscribe("topic", Text, lambda msg: received.append("victim"))

    publisher.publish(Text(data="x"))
    node.spin_once(timeout=0)

    assert received == ["first"]


def test_failing_callback_does_not_affect_others(context):
    received = []
    node = Node("a", context)
    publisher = node.advertise("topic", Text)

    def broken(msg):
        raise RuntimeError("boom")

    node.subscribe("topic", Text, broken)
    node.subscribe("topic", Text, received.append)

    publisher.publish(Text(data="one"))
    publisher.publish(Text(data="two"))
    node.spin_once(timeout=0)

    assert [m.data for m in received] == ["one", "two"]
    assert node.failures.count("RuntimeError") == 2
    assert node.ok()


def test_invalid_timer_periods(context):
    node = Node("a", context)
    for period in [0, -1.0, float("nan"), float("inf"), "1", True]:
        with pytest.raises(InvalidPeriod):
            node.create_timer(period, lambda: None)


def test_node_needs_initialised_context(config):
    ctx = Context(config)
    with pytest.raises(NotInitialized):
        Node("a", ctx)

    ctx.init()
    ctx.shutdown()
    with pytest.raises(NotInitialized):
        Node("a", ctx)


def test_invalid_node_name(context):
    with pytest.raises(InvalidName):
        Node("bad name", context)


def test_shutdown_is_idempotent_and_stops_spin(context):
    node = Node("a", context)
    node.shutdown()
    node.shutdown()
    assert not node.ok()
    assert node.spin_once(timeout=0) == 0
    node.spin()  # returns immediately


def test_shutdown_from_callback_exits_after_in_flight_callback(context):
    calls = []
    node = Node("a", context)
    publisher = node.advertise("topic", Text)

    def stop(msg):
        calls.append(msg.data)
        node.shutdown()

    node.subscribe("topic", Text, stop)
    publisher.publish(Text(data="first"))
    publisher.publish(Text(data="second"))
    node.spin()

    assert calls == ["first"]


def test_spin_wakes_on_delivery_from_other_thread(context):
    got = threading.Event()
    listener = Node("listener", context)
    talker = Node("talker", context)
    listener.subscribe("topic", Text, lambda msg: got.set())
    publisher = talker.advertise("topic", Text)

    thread = NodeThread(listener)
    thread.start()
    try:
        publisher.publish(Text(data="wake up"))
        assert got.wait(timeout=2.0)
    finally:
        thread.stop(timeout=2.0)
    assert not thread.is_alive()


def test_concurrent_binding_has_one_winner(context):
    types = [Text, Vector3, ColorNumber] * 4
    nodes = [Node(f"n{i}", context) for i in range(len(types))]
    barrier = threading.Barrier(len(nodes))
    bound, conflicts = [], []

    def bind(i):
        barrier.wait()
        try:
            if i % 2:
                nodes[i].subscribe("race", types[i], lambda msg: None)
            else:
                nodes[i].advertise("race", types[i])
            bound.append(types[i])
        except TypeConflict:
            conflicts.append(types[i])

    threads = [threading.Thread(target=bind, args=(i,)) for i in range(len(nodes))]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5.0)

    winner = context.bus.topic_type("race")
    assert bound == [winner] * 4
    assert len(conflicts) == len(types) - 4
    assert winner not in conflicts
    assert context.bus.count_publishers("race") + context.bus.count_subscribers("race") == 4


def test_order_per_publisher_is_kept_across_threads(context):
    count = 200
    received = []
    done = threading.Event()
    listener = Node("listener", context)

    def on_message(msg):
        received.append(msg.data)
        if len(received) == 2 * count:
            done.set()

    listener.subscribe("topic", Text, on_message, queue_depth=4 * count)
    publishers = [Node(name, context).advertise("topic", Text, 2 * count) for name in ("a", "b")]

    def publish_all(prefix, publisher):
        for i in range(count):
            publisher.publish(Text(data=f"{prefix}:{i}"))

    spinner = NodeThread(listener)
    spinner.start()
    senders = [threading.Thread(target=publish_all, args=(prefix, publisher))
               for prefix, publisher in zip("ab", publishers)]
    try:
        for sender in senders:
            sender.start()
        for sender in senders:
            sender.join(timeout=5.0)
        assert done.wait(timeout=5.0)
    finally:
        spinner.stop(timeout=2.0)

    for prefix in "ab":
        sequence = [int(data.split(":")[1]) for data in received if data.startswith(prefix)]
        assert sequence == list(range(count))


def test_shutdown_unblocks_idle_spin(context):
    node = Node("idle", context)
    thread = NodeThread(node)
    thread.start()
    node.shutdown()
    thread.join(timeout=2.0)
    assert not thread.is_alive()


def test_destroy_releases_everything(context):
    node = Node("a", context)
    publisher = node.advertise("topic", Text)
    subscription = node.subscribe("other", Vector3, lambda msg: None)
    timer = node.create_timer(1.0, lambda: None)

    node.destroy()

    assert publisher.destroyed and subscription.destroyed and timer.is_canceled()
    assert context.bus.topic_names_and_types() == []
    assert node not in context.nodes
    with pytest.raises(HandleDestroyed):
        node.advertise("topic", Text)


def test_context_shutdown_destroys_nodes(config):
    ctx = Context(config).init()
    a = Node("a", ctx)
    b = Node("b", ctx)
    a.advertise("topic", Text)
    b.subscribe("topic", Text, lambda msg: None)

    ctx.shutdown()
    ctx.shutdown()

    assert not ctx.ok()
    assert ctx.nodes == []
    assert not a.ok() and not b.ok()
    assert ctx.bus.topic_names_and_types() == []


def test_node_implements_node_interface(context):
    assert isinstance(Node("a", context), NodeInterface)


def test_default_queue_depth_from_config(config):
    config.merge({'bus': {'default_queue_depth': 3}})
    with Context(config) as ctx:
        node = Node("a", ctx)
        assert node.subscribe("topic", Text, lambda msg: None).queue_depth == 3
        assert node.advertise("topic", Text).queue_depth == 3
