"""SVN Sync - export a Git monorepo's mainline to Subversion without rewriting history."""

__version__ = "0.1.0"
__author__ = "SVN Sync Contributors"

from svn_sync.config import Settings, load_settings

__all__ = ["Settings", "load_settings", "__version__"]
