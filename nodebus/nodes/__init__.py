"""
Example nodes for nodebus.

Each example composes a Node rather than inheriting from it:

    talker        -> [topic: Text]        -> listener
    vector_talker -> [vector_topic: Vector3] -> vector_listener
    color_sensor  -> [color: ColorNumber] -> led_actuator

Settings for each come from the ``nodes.<name>`` section of the config.
"""
from typing import Any, Dict

from nodebus.utils.config import Config
from .chatter import MinimalPublisher, MinimalSubscriber
from .vector import VectorPublisher, VectorSubscriber
from .color import ColorSensor, LedActuator

NODES = {
    "talker": MinimalPublisher,
    "listener": MinimalSubscriber,
    "vector_talker": VectorPublisher,
    "vector_listener": VectorSubscriber,
    "color_sensor": ColorSensor,
    "led_actuator": LedActuator,
}


def create_example(name: str, context, config: Config) -> Any:
    """Instantiate the example registered under ``name`` with its config section."""
    if name not in NODES:
        raise KeyError(f"Unknown example node '{name}' (choose from {', '.join(sorted(NODES))})")
    settings: Dict[str, Any] = dict(config.get(f"nodes.{name}", {}) or {})
    return NODES[name](context, **settings)


__all__ = [
    "NODES", "create_example",
    "MinimalPublisher", "MinimalSubscriber",
    "VectorPublisher", "VectorSubscriber",
    "ColorSensor", "LedActuator",
]
