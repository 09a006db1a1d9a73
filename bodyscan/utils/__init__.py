"""
Utilities: configuration loading and logging.
"""

from .config import DEFAULT_CONFIG, load_config, merge_config
from .scan_logger import ScanLogger

__all__ = ["DEFAULT_CONFIG", "load_config", "merge_config", "ScanLogger"]
