"""Mountify - map SFTP endpoints to Windows drive letters."""

__version__ = "0.1.0"
