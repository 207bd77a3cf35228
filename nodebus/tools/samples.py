"""
Sample collection for the live plot.

A PlotSubscriber extracts the numeric fields of each incoming message into a
bounded, thread-safe SampleBuffer; the plot window reads it from the GUI
thread while the subscriber's node spins on its own thread.
"""
import threading
import time
from collections import deque
from typing import Callable, List, Optional, Sequence, Tuple, Type

import numpy as np

from nodebus.core.context import Context
from nodebus.core.messages import FLOAT64, INT64, Message, schema_of
from nodebus.core.node import Node
from nodebus.tools.topic import lookup_type
from nodebus.utils.constants import DEFAULT_PLOT_SAMPLES
from nodebus.utils.failures import InvalidField


def numeric_fields(msg_type: Type[Message]) -> List[str]:
    return [name for name, type_name in schema_of(msg_type) if type_name in (FLOAT64, INT64)]


class SampleBuffer:
    """Keeps the latest ``max_samples`` (time, values) rows."""

    def __init__(self, fields: Sequence[str], max_samples: int = DEFAULT_PLOT_SAMPLES):
        if not fields:
            raise InvalidField("SampleBuffer needs at least one field")
        self.fields = list(fields)
        self._times: deque = deque(maxlen=max_samples)
        self._values: deque = deque(maxlen=max_samples)
        self._lock = threading.Lock()

    def append(self, t: float, values: Sequence[float]) -> None:
        if len(values) != len(self.fields):
            raise InvalidField(f"Expected {len(self.fields)} value(s), got {len(values)}")
        with self._lock:
            self._times.append(float(t))
            self._values.append([float(v) for v in values])

    def arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        """(times with shape (n,), values with shape (n, len(fields)))."""
        with self._lock:
            times = np.asarray(self._times, dtype=np.float64)
            values = np.asarray(self._values, dtype=np.float64).reshape(-1, len(self.fields))
        return times, values

    def __len__(self):
        with self._lock:
            return len(self._times)


class PlotSubscriber:
    """Subscribes to a topic and records its numeric fields for plotting."""

    def __init__(self, context: Context, topic: str, fields: Optional[Sequence[str]] = None,
                 msg_type: Optional[Type[Message]] = None, max_samples: int = DEFAULT_PLOT_SAMPLES,
                 clock: Optional[Callable[[], float]] = None, name: str = "topic_plot"):
        msg_type = lookup_type(context.bus, topic, msg_type)
        available = numeric_fields(msg_type)
        selected = list(fields) if fields else available
        unknown = [f for f in selected if f not in available]
        if not available:
            raise InvalidField(f"{msg_type.__name__} has no numeric fields to plot")
        if unknown:
            raise InvalidField(f"Cannot plot {unknown}: numeric fields of {msg_type.__name__} are {available}")

        self.topic = topic
        self.clock = clock or time.monotonic
        self.buffer = SampleBuffer(selected, max_samples)
        self.node = Node(name, context, clock=self.clock)
        self.subscription = self.node.subscribe(topic, msg_type, self._on_message)
        self._t0 = self.clock()

    def _on_message(self, msg: Message) -> None:
        self.buffer.append(self.clock() - self._t0, [getattr(msg, f) for f in self.buffer.fields])
