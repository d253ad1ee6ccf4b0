"""
Server Registry - persisted list of ServerProfile objects.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

import aiofiles
import aiofiles.os
from pydantic import ValidationError

from mountify.models import ServerProfile, new_server_id


class ServerRegistry:
    """
    In-memory profile store guarded by an asyncio lock and written through to
    a JSON file on every change.

    Readers get copies, so a profile held by a caller is a snapshot that may
    be stale by the time it is used. Writers that depend on current state
    (``set_mounted``) re-read under the lock.
    """

    def __init__(self, file_path: str):
        self._file_path = Path(file_path)
        self._servers_by_id: Dict[str, ServerProfile] = {}
        self._lock = asyncio.Lock()
        logging.info(f"ServerRegistry initialized ({self._file_path})")

    async def load(self) -> int:
        """Load profiles from disk. A missing or unreadable file yields an empty registry."""
        async with self._lock:
            self._servers_by_id = {}
            if not await aiofiles.os.path.exists(self._file_path):
                logging.info(f"No server registry at {self._file_path}, starting empty")
                return 0

            try:
                async with aiofiles.open(self._file_path, "r", encoding="utf-8") as f:
                    raw = json.loads(await f.read())
            except (OSError, json.JSONDecodeError) as e:
                logging.error(f"Could not read server registry {self._file_path}: {e}")
                return 0

            for entry in raw if isinstance(raw, list) else []:
                try:
                    profile = ServerProfile.model_validate(entry)
                except ValidationError as e:
                    logging.warning(f"Skipping invalid server entry in registry: {e}")
                    continue
                if not profile.id:
                    profile.id = new_server_id()
                self._servers_by_id[profile.id] = profile

            logging.info(f"Loaded {len(self._servers_by_id)} server profile(s)")
            return len(self._servers_by_id)

    async def get_by_id(self, server_id: str) -> Optional[ServerProfile]:
        async with self._lock:
            profile = self._servers_by_id.get(server_id)
            return profile.model_copy() if profile else None

    async def get_all(self) -> List[ServerProfile]:
        async with self._lock:
            return [profile.model_copy() for profile in self._servers_by_id.values()]

    async def save(self, profile: ServerProfile) -> ServerProfile:
        """
        Create or update a profile.

        New profiles get an id and start unmounted. Updates keep the stored
        ``is_mounted`` value; only the MountController changes it. Outbound
        views never carry the password, so an update without one (field
        missing or empty) keeps the stored password.
        """
        async with self._lock:
            stored = profile.model_copy()
            existing = self._servers_by_id.get(stored.id) if stored.id else None

            if existing is None:
                if not stored.id:
                    stored.id = new_server_id()
                stored.is_mounted = False
                logging.info(f"Adding server profile '{stored.name}' ({stored.id})")
            else:
                stored.is_mounted = existing.is_mounted
                password_given = "password" in profile.model_fields_set
                if not password_given or not profile.password.get_secret_value():
                    stored.password = existing.password
                logging.info(f"Updating server profile '{stored.name}' ({stored.id})")

            self._servers_by_id[stored.id] = stored
            await self._persist()
            return stored.model_copy()

    async def remove(self, server_id: str) -> bool:
        async with self._lock:
            if server_id not in self._servers_by_id:
                return False
            del self._servers_by_id[server_id]
            await self._persist()
            return True

    async def set_mounted(
        self,
        server_id: str,
        is_mounted: bool,
        expected_drive_letter: Optional[str] = None,
    ) -> Optional[List[ServerProfile]]:
        """
        Record a verified mount state against the current stored profile.

        Returns the full profile list after the write, or None when nothing
        was written: the profile was removed, or its drive letter was changed
        to something other than ``expected_drive_letter``, while the operation
        was running.
        """
        async with self._lock:
            current = self._servers_by_id.get(server_id)
            if current is None:
                logging.warning(
                    f"Server {server_id} disappeared before its mount state could be saved"
                )
                return None
            if expected_drive_letter and current.drive_letter != expected_drive_letter:
                logging.warning(
                    f"Server {server_id} now uses {current.drive_letter}: instead of "
                    f"{expected_drive_letter}:, not recording mount state"
                )
                return None
            current.is_mounted = is_mounted
            await self._persist()
            return [profile.model_copy() for profile in self._servers_by_id.values()]

    async def _persist(self) -> None:
        # Caller holds the lock
        payload = [profile.to_storage_dict() for profile in self._servers_by_id.values()]
        tmp_path = self._file_path.with_suffix(self._file_path.suffix + ".tmp")
        await aiofiles.os.makedirs(self._file_path.parent, exist_ok=True)
        async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(payload, indent=2))
        await aiofiles.os.replace(tmp_path, self._file_path)
