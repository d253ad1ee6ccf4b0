import asyncio
import logging
from typing import Dict, Set

from mountify.core.exceptions import InvalidTransitionError, OperationInProgressError
from mountify.models import MountPhase


TERMINAL_PHASES = {MountPhase.MOUNTED, MountPhase.UNMOUNTED, MountPhase.FAILED}


class MountStateMachine:
    """
    Gatekeeper for the transient phase of each server's mount/unmount run.

    It is the only place that:
    1. Decides whether an operation may start for a server (one at a time).
    2. Validates every phase change against the transition table.
    3. Forgets the run once it reached a terminal phase.

    Only ``ServerProfile.is_mounted`` survives an operation; the phase itself
    is never persisted.
    """

    def __init__(self):
        self._phases: Dict[str, MountPhase] = {}
        self._lock = asyncio.Lock()

        self._transitions: Dict[MountPhase, Set[MountPhase]] = {
            MountPhase.IDLE: {
                MountPhase.FORCE_UNMOUNTING,
                MountPhase.UNMAPPING,
            },
            MountPhase.FORCE_UNMOUNTING: {
                MountPhase.MAPPING,
                MountPhase.FAILED,
            },
            MountPhase.MAPPING: {
                MountPhase.VERIFYING,
                MountPhase.FAILED,
            },
            MountPhase.UNMAPPING: {
                MountPhase.VERIFYING,
                MountPhase.FAILED,
            },
            MountPhase.VERIFYING: {
                MountPhase.MOUNTED,
                MountPhase.UNMOUNTED,
                MountPhase.FAILED,
            },
        }

    async def begin(self, server_id: str, first_phase: MountPhase) -> None:
        """
        Claim the server for a new operation.

        Raises:
            OperationInProgressError: another operation for this server is running.
            InvalidTransitionError: ``first_phase`` is not a valid start phase.
        """
        async with self._lock:
            current = self._phases.get(server_id, MountPhase.IDLE)
            if current != MountPhase.IDLE:
                raise OperationInProgressError(server_id, current.value)
            self._check(server_id, MountPhase.IDLE, first_phase)
            self._phases[server_id] = first_phase
            logging.debug(f"Server {server_id}: Idle -> {first_phase.value}")

    async def advance(self, server_id: str, new_phase: MountPhase) -> None:
        async with self._lock:
            current = self._phases.get(server_id, MountPhase.IDLE)
            self._check(server_id, current, new_phase)
            self._phases[server_id] = new_phase
            logging.debug(f"Server {server_id}: {current.value} -> {new_phase.value}")

    async def finish(self, server_id: str, terminal_phase: MountPhase) -> None:
        """Move to a terminal phase and release the server back to Idle."""
        if terminal_phase not in TERMINAL_PHASES:
            raise InvalidTransitionError(server_id, "*", terminal_phase.value)
        async with self._lock:
            current = self._phases.get(server_id, MountPhase.IDLE)
            self._check(server_id, current, terminal_phase)
            self._phases.pop(server_id, None)
            logging.debug(f"Server {server_id}: {current.value} -> {terminal_phase.value} (released)")

    async def abort(self, server_id: str) -> None:
        """Release the server without validation, used when a run is cancelled."""
        async with self._lock:
            self._phases.pop(server_id, None)

    def current_phase(self, server_id: str) -> MountPhase:
        return self._phases.get(server_id, MountPhase.IDLE)

    def is_busy(self, server_id: str) -> bool:
        return server_id in self._phases

    def _check(self, server_id: str, current: MountPhase, new_phase: MountPhase) -> None:
        if new_phase not in self._transitions.get(current, set()):
            raise InvalidTransitionError(server_id, current.value, new_phase.value)
