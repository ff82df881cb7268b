"""
nextcloud-installer - Nextcloud installer for Debian-based single-board computers
"""

__version__ = "0.1.0"

from .core import NextcloudInstaller
from .errors import InstallerError

__all__ = ["NextcloudInstaller", "InstallerError"]
