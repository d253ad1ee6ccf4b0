"""
Dependency provisioning for the two mount prerequisites (WinFsp, SSHFS-Win).
"""

from .catalog import Prerequisite, build_prerequisites, resolve_prerequisite
from .downloader import InstallerDownloader
from .provisioner import DependencyProvisioner

__all__ = [
    "DependencyProvisioner",
    "InstallerDownloader",
    "Prerequisite",
    "build_prerequisites",
    "resolve_prerequisite",
]
