"""Utility modules for SVN Sync."""

from svn_sync.utils.logger import setup_logging, get_logger
from svn_sync.utils.display import ProgressDisplay

__all__ = ["setup_logging", "get_logger", "ProgressDisplay"]
