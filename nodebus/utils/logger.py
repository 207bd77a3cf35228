import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from nodebus.utils.constants import LOGS_DIR


def parse_size(value, default: int = 5 * 1024 * 1024) -> int:
    """Parse a rotation size such as "5MB" or "512KB" into bytes."""
    rot_str = str(value).strip().upper()
    try:
        if rot_str.endswith('MB'):
            return int(rot_str[:-2]) * 1024 * 1024
        if rot_str.endswith('KB'):
            return int(rot_str[:-2]) * 1024
        return int(rot_str)
    except ValueError:
        return default


class Logger:
    """Named logger with console and optional rotating file output."""

    _configured = False

    @classmethod
    def setup(cls, settings: dict):
        """
        Global configuration for all Logger instances.

        Args:
            settings: Dictionary containing 'level', 'to_file', 'directory',
                      'rotation', 'backup_count'
        """
        if cls._configured:
            return

        level_name = str(settings.get('level', 'INFO')).upper()
        level = getattr(logging, level_name, logging.INFO)

        root = logging.getLogger()
        root.setLevel(level)

        if not root.handlers:
            formatter = logging.Formatter(
                '[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )

            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setFormatter(formatter)
            root.addHandler(console_handler)

            if settings.get('to_file', False):
                try:
                    log_dir = Path(settings.get('directory') or LOGS_DIR)
                    log_dir.mkdir(parents=True, exist_ok=True)

                    file_handler = RotatingFileHandler(
                        log_dir / "nodebus.log",
                        maxBytes=parse_size(settings.get('rotation', '5MB')),
                        backupCount=settings.get('backup_count', 5)
                    )
                    file_handler.setFormatter(formatter)
                    root.addHandler(file_handler)
                except OSError as e:
                    root.warning(f"Failed to initialize file logger: {e}")

        cls._configured = True

    def __init__(self, name: str = "nodebus"):
        self.name = name
        self.logger = logging.getLogger(name)

    def info(self, message: str):
        self.logger.info(message)

    def warning(self, message: str):
        self.logger.warning(message)

    def error(self, message: str):
        self.logger.error(message)

    def debug(self, message: str):
        self.logger.debug(message)

    def critical(self, message: str):
        self.logger.critical(message)
