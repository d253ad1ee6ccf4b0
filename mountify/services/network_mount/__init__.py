"""
Network mount package.

Components:
- MountController: per-server mount/unmount lifecycle with verification
- NetUseClient: the ``net use`` map/delete/query primitives
- DriveLetterAllocator: which drive letters the OS has not assigned
"""

from .drive_letters import DriveLetterAllocator, merge_current_letter
from .mount_controller import MountController
from .net_use import NetUseClient

__all__ = [
    "MountController",
    "NetUseClient",
    "DriveLetterAllocator",
    "merge_current_letter",
]
