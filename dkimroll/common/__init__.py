# Common utilities
from dkimroll.common.config import Config as Config
from dkimroll.common.logging_utils import setup_logger as setup_logger

__all__ = ["Config", "setup_logger"]
