"""Topic binding, routing and introspection."""
import pytest

from nodebus.core.bus import resolve_topic_name
from nodebus.core.context import Context
from nodebus.core.messages import ColorNumber, Text, Vector3
from nodebus.core.node import Node
from nodebus.utils.failures import HandleDestroyed, InvalidName, TypeConflict, TypeMismatch


def test_subscribe_with_other_type_conflicts(context):
    node = Node("a", context)
    node.advertise("c", ColorNumber)
    with pytest.raises(TypeConflict):
        node.subscribe("c", Vector3, lambda msg: None)


def test_advertise_with_other_type_conflicts(context):
    node = Node("a", context)
    node.subscribe("c", ColorNumber, lambda msg: None)
    with pytest.raises(TypeConflict):
        node.advertise("c", Text)


def test_publish_wrong_type_fails(context):
    node = Node("a", context)
    publisher = node.advertise("v", Vector3)
    with pytest.raises(TypeMismatch):
        publisher.publish(Text(data="not a vector"))


def test_publish_does_not_run_callbacks(context):
    received = []
    node = Node("a", context)
    publisher = node.advertise("topic", Text)
    node.subscribe("topic", Text, received.append)

    publisher.publish(Text(data="hi"))
    assert received == []

    assert node.spin_once(timeout=0) == 1
    assert received == [Text(data="hi")]


def test_delivery_follows_registration_order(context):
    calls = []
    node = Node("a", context)
    publisher = node.advertise("topic", Text)
    node.subscribe("topic", Text, lambda msg: calls.append("first"))
    node.subscribe("topic", Text, lambda msg: calls.append("second"))

    publisher.publish(Text(data="x"))
    node.spin_once(timeout=0)
    assert calls == ["first", "second"]


def test_late_subscriber_misses_earlier_messages(context):
    received = []
    node = Node("a", context)
    publisher = node.advertise("topic", Text)
    publisher.publish(Text(data="early"))
    node.subscribe("topic", Text, received.append)
    publisher.publish(Text(data="late"))

    node.spin_once(timeout=0)
    assert received == [Text(data="late")]


def test_topic_names_are_absolute_and_validated(context):
    node = Node("a", context)
    publisher = node.advertise("vector_topic", Vector3)
    assert publisher.topic == "/vector_topic"
    assert context.bus.topic_type("/vector_topic") is Vector3
    assert context.bus.topic_type("vector_topic") is Vector3

    assert resolve_topic_name("/robot/cmd") == "/robot/cmd"
    for bad in ["", "/", "a//b", "trailing/", "1abc", "with space", None]:
        with pytest.raises(InvalidName):
            resolve_topic_name(bad)


def test_queue_depth_must_be_positive(context):
    node = Node("a", context)
    with pytest.raises(ValueError):
        node.advertise("topic", Text, 0)
    with pytest.raises(ValueError):
        node.subscribe("topic", Text, lambda msg: None, queue_depth=-1)


def test_full_queue_keeps_latest_messages(context):
    received = []
    node = Node("a", context)
    publisher = node.advertise("topic", Text)
    subscription = node.subscribe("topic", Text, received.append, queue_depth=2)

    for i in range(3):
        publisher.publish(Text(data=str(i)))
    node.spin_once(timeout=0)

    assert [m.data for m in received] == ["1", "2"]
    assert subscription.dropped == 1


def test_publisher_depth_caps_connection(context):
    received = []
    node = Node("a", context)
    publisher = node.advertise("topic", Text, 1)
    subscription = node.subscribe("topic", Text, received.append, queue_depth=5)

    for i in range(3):
        publisher.publish(Text(data=str(i)))
    node.spin_once(timeout=0)

    assert [m.data for m in received] == ["2"]
    assert subscription.dropped == 2
    assert subscription.delivered == 2


def test_topic_released_when_last_endpoint_goes(context):
    node = Node("a", context)
    publisher = node.advertise("topic", Text)
    subscription = node.subscribe("topic", Text, lambda msg: None)
    assert context.bus.topic_names_and_types() == [("/topic", "Text")]

    publisher.destroy()
    assert context.bus.count_publishers("topic") == 0
    assert context.bus.count_subscribers("topic") == 1

    subscription.destroy()
    assert context.bus.topic_names_and_types() == []

    # The binding went with the topic.
    assert node.advertise("topic", Vector3).msg_type is Vector3


def test_publish_on_destroyed_publisher_fails(context):
    node = Node("a", context)
    publisher = node.advertise("topic", Text)
    node.destroy_publisher(publisher)
    with pytest.raises(HandleDestroyed):
        publisher.publish(Text(data="late"))


def test_introspection_counts(context):
    a = Node("a", context)
    b = Node("b", context)
    a.advertise("v", Vector3)
    b.subscribe("v", Vector3, lambda msg: None)
    b.subscribe("v", Vector3, lambda msg: None)
    a.advertise("color", ColorNumber)

    assert context.bus.topic_names_and_types() == [("/color", "ColorNumber"), ("/v", "Vector3")]
    assert a.count_publishers("v") == 1
    assert a.count_subscribers("v") == 2
    assert context.bus.topic_type("missing") is None


def test_serialize_in_transit_delivers_equal_copy(config):
    config.merge({'bus': {'serialize_in_transit': True}})
    with Context(config) as ctx:
        received = []
        node = Node("a", ctx)
        publisher = node.advertise("v", Vector3)
        node.subscribe("v", Vector3, received.append)

        sent = Vector3(x=1.0, y=2.0, z=0.0)
        publisher.publish(sent)
        node.spin_once(timeout=0)

        assert received == [sent]
        assert received[0] is not sent
