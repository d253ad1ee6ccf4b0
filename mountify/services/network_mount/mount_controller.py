"""Mount Controller - drives the per-server mount/unmount lifecycle."""

import asyncio
import logging
from typing import List, Optional

from .net_use import NetUseClient
from ...core.events.event_bus import DomainEventBus
from ...core.events.mount_events import (
    MountResultEvent,
    ServersUpdatedEvent,
    TrayRefreshRequestedEvent,
    UnmountResultEvent,
)
from ...core.exceptions import (
    ExecFailureError,
    MountifyError,
    OperationInProgressError,
    VerificationFailureError,
)
from ...core.mount_state_machine import MountStateMachine
from ...core.server_registry import ServerRegistry
from ...models import MountPhase, MountResult, ServerProfile
from ...utils.redaction import sanitize_error

SERVER_NOT_FOUND = "Server not found"
MOUNT_VERIFICATION_FAILED = "Mount verification failed - drive not accessible"
UNMOUNT_VERIFICATION_FAILED = "Drive still mounted after unmount attempt"


class MountController:
    """
    Owns mount/unmount for server profiles.

    Outcomes are trusted only after an independent ``net use <drive>`` query:
    the mapping command can exit 0 while the share is unusable, and can
    print errors while succeeding. ``is_mounted`` is written only after that
    query agrees.

    Every call ends in exactly one result event, except an unknown server id,
    which is answered directly and publishes nothing.
    """

    def __init__(
        self,
        registry: ServerRegistry,
        net_use: NetUseClient,
        state_machine: MountStateMachine,
        event_bus: DomainEventBus,
        settle_delay_seconds: float = 0.5,
    ):
        self._registry = registry
        self._net_use = net_use
        self._state = state_machine
        self._event_bus = event_bus
        self._settle_delay = settle_delay_seconds

    async def mount(self, server_id: str) -> MountResult:
        profile = await self._registry.get_by_id(server_id)
        if profile is None:
            logging.warning(f"Mount requested for unknown server {server_id}")
            return MountResult(server_id=server_id, success=False, error=SERVER_NOT_FOUND)

        try:
            await self._state.begin(server_id, MountPhase.FORCE_UNMOUNTING)
        except OperationInProgressError as e:
            logging.warning(f"Mount of '{profile.name}' rejected: {e} ({e.phase})")
            return await self._report_mount(profile, success=False, error=str(e))

        try:
            servers = await self._run_mount(profile)
        except asyncio.CancelledError:
            await self._state.abort(server_id)
            raise
        except MountifyError as e:
            error = self._user_message(e, profile)
            logging.error(f"Mount of '{profile.name}' on {profile.drive} failed: {error}")
            await self._state.finish(server_id, MountPhase.FAILED)
            return await self._report_mount(profile, success=False, error=error)
        except Exception as e:
            logging.exception(f"Unexpected error mounting '{profile.name}'")
            await self._state.finish(server_id, MountPhase.FAILED)
            return await self._report_mount(
                profile, success=False, error=self._user_message(e, profile)
            )

        await self._state.finish(server_id, MountPhase.MOUNTED)
        logging.info(f"Mounted '{profile.name}' as {profile.drive}")
        if servers is None:
            logging.warning(
                f"'{profile.name}' is mounted as {profile.drive} but its profile was removed "
                "or re-lettered meanwhile; mount state not recorded"
            )
        result = await self._report_mount(profile, success=True)
        await self._publish_registry_changed(servers, reason="mounted")
        return result

    async def unmount(self, server_id: str) -> MountResult:
        profile = await self._registry.get_by_id(server_id)
        if profile is None:
            logging.warning(f"Unmount requested for unknown server {server_id}")
            return MountResult(server_id=server_id, success=False, error=SERVER_NOT_FOUND)

        try:
            await self._state.begin(server_id, MountPhase.UNMAPPING)
        except OperationInProgressError as e:
            logging.warning(f"Unmount of '{profile.name}' rejected: {e} ({e.phase})")
            return await self._report_unmount(profile, success=False, error=str(e))

        try:
            servers = await self._run_unmount(profile)
        except asyncio.CancelledError:
            await self._state.abort(server_id)
            raise
        except MountifyError as e:
            error = self._user_message(e, profile)
            logging.error(f"Unmount of '{profile.name}' from {profile.drive} failed: {error}")
            await self._state.finish(server_id, MountPhase.FAILED)
            return await self._report_unmount(profile, success=False, error=error)
        except Exception as e:
            logging.exception(f"Unexpected error unmounting '{profile.name}'")
            await self._state.finish(server_id, MountPhase.FAILED)
            return await self._report_unmount(
                profile, success=False, error=self._user_message(e, profile)
            )

        await self._state.finish(server_id, MountPhase.UNMOUNTED)
        logging.info(f"Unmounted '{profile.name}' from {profile.drive}")
        if servers is None:
            logging.warning(
                f"'{profile.name}' was unmounted from {profile.drive} but its profile was "
                "removed or re-lettered meanwhile; mount state not recorded"
            )
        result = await self._report_unmount(profile, success=True)
        await self._publish_registry_changed(servers, reason="unmounted")
        return result

    def current_phase(self, server_id: str) -> MountPhase:
        return self._state.current_phase(server_id)

    async def _run_mount(self, profile: ServerProfile) -> Optional[List[ServerProfile]]:
        # Pre-clean whatever holds the letter; outcome ignored
        await self._net_use.delete_mapping(profile.drive)
        # Immediate re-mapping can be rejected as "still in use"
        await asyncio.sleep(self._settle_delay)

        await self._state.advance(profile.id, MountPhase.MAPPING)
        result = await self._net_use.map_drive(profile)
        if not result.ok:
            raise ExecFailureError(
                result.args,
                result.returncode,
                detail=result.stderr.strip() or result.stdout.strip(),
            )

        await self._state.advance(profile.id, MountPhase.VERIFYING)
        if not await self._net_use.mapping_exists(profile.drive):
            raise VerificationFailureError(MOUNT_VERIFICATION_FAILED)

        return await self._registry.set_mounted(profile.id, True, profile.drive_letter)

    async def _run_unmount(self, profile: ServerProfile) -> Optional[List[ServerProfile]]:
        # The drive-letter delete can silently miss a mapping created under
        # another session; the UNC delete catches that case.
        await self._net_use.delete_mapping(profile.drive)
        await self._net_use.delete_mapping(profile.unc_path)
        await asyncio.sleep(self._settle_delay)

        await self._state.advance(profile.id, MountPhase.VERIFYING)
        if await self._net_use.mapping_exists(profile.drive):
            raise VerificationFailureError(UNMOUNT_VERIFICATION_FAILED)

        return await self._registry.set_mounted(profile.id, False, profile.drive_letter)

    @staticmethod
    def _user_message(error: Exception, profile: ServerProfile) -> str:
        message = sanitize_error(str(error), profile.password.get_secret_value())
        return message or "Unknown error"

    async def _report_mount(
        self, profile: ServerProfile, success: bool, error: Optional[str] = None
    ) -> MountResult:
        await self._event_bus.publish(
            MountResultEvent(
                server_id=profile.id,
                server_name=profile.name,
                drive_letter=profile.drive_letter,
                success=success,
                error=error,
            )
        )
        return MountResult(server_id=profile.id, success=success, error=error)

    async def _report_unmount(
        self, profile: ServerProfile, success: bool, error: Optional[str] = None
    ) -> MountResult:
        await self._event_bus.publish(
            UnmountResultEvent(
                server_id=profile.id,
                server_name=profile.name,
                drive_letter=profile.drive_letter,
                success=success,
                error=error,
            )
        )
        return MountResult(server_id=profile.id, success=success, error=error)

    async def _publish_registry_changed(
        self, servers: Optional[List[ServerProfile]], reason: str
    ) -> None:
        if servers is None:
            return
        await self._event_bus.publish(
            ServersUpdatedEvent(servers=[profile.to_public_dict() for profile in servers])
        )
        await self._event_bus.publish(TrayRefreshRequestedEvent(reason=reason))
