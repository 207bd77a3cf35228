"""
Observers for a running bus: topic list/info/echo/hz and the live plot.

The Qt plot window lives in ``nodebus.tools.plot_window`` and is imported
on demand so the rest of the tools work without a display.
"""
from .topic import list_topics, topic_info, format_message, TopicEcho, TopicHz, RateStats
from .samples import SampleBuffer, PlotSubscriber, numeric_fields

__all__ = [
    "list_topics", "topic_info", "format_message", "TopicEcho", "TopicHz", "RateStats",
    "SampleBuffer", "PlotSubscriber", "numeric_fields",
]
