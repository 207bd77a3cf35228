"""
Global constants for nodebus.
"""
from pathlib import Path

# Project Structure
PACKAGE_DIR = Path(__file__).parent.parent
CONFIGS_DIR = PACKAGE_DIR / "configs"
LOGS_DIR = Path.cwd() / "logs"

# Endpoints
DEFAULT_QUEUE_DEPTH = 10

# Tutorial topics
TOPIC_CHATTER = "topic"
TOPIC_VECTOR = "vector_topic"
TOPIC_COLOR = "color"

# Tutorial timing (seconds)
DEFAULT_TIMER_PERIOD = 0.5

# Observers
DEFAULT_HZ_WINDOW = 100
DEFAULT_PLOT_SAMPLES = 500
PLOT_REFRESH_MS = 33

# Failure tracking
DEFAULT_FAILURE_THRESHOLD = 5
DEFAULT_FAILURE_WINDOW = 300
