"""
Scan Logger Module
Logging setup shared by the command line tools and the reconstruction session
"""

import logging
import sys
from pathlib import Path

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class ScanLogger:
    """Configures the ``bodyscan`` logger hierarchy"""

    def __init__(self, name="bodyscan", log_file=None, level=logging.INFO):
        """
        Initialize the logger

        Args:
            name: Logger name, module loggers below it inherit the handlers
            log_file: Path to log file (optional)
            level: Logging level, either an int or a name such as "DEBUG"
        """
        if isinstance(level, str):
            level = logging.getLevelName(level.upper())
            if not isinstance(level, int):
                level = logging.INFO

        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)

        # Clear existing handlers
        self.logger.handlers.clear()

        formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        self.logger.addHandler(console_handler)

        self.log_file = None
        if log_file:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.FileHandler(log_path)
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)
            self.log_file = log_path

    @classmethod
    def from_config(cls, config, name="bodyscan"):
        """Build a logger from the ``logging`` section of a reconstruction config"""
        section = config.get('logging', {}) if config else {}
        return cls(name=name,
                   log_file=section.get('file'),
                   level=section.get('level', logging.INFO))

    def write(self, message, level="info"):
        """
        Write a log message

        Args:
            message: Message to log
            level: Log level (info, warning, error, debug)
        """
        level = level.lower()
        if level == "warning":
            self.logger.warning(message)
        elif level == "error":
            self.logger.error(message)
        elif level == "debug":
            self.logger.debug(message)
        else:
            self.logger.info(message)
