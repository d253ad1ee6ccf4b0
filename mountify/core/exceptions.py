# mountify/core/exceptions.py

from typing import Optional, Sequence


class MountifyError(Exception):
    """Base class for every failure the core converts into a result or event."""


class ServerNotFoundError(MountifyError):
    def __init__(self, server_id: str):
        self.server_id = server_id
        super().__init__("Server not found")


class ExecFailureError(MountifyError):
    """An OS command exited non-zero."""

    def __init__(
        self,
        command: Sequence[str],
        returncode: Optional[int],
        detail: str = "",
        message: Optional[str] = None,
    ):
        self.command = list(command)
        self.returncode = returncode
        self.detail = detail
        if message is None:
            message = f"Command failed with exit code {returncode}"
            if detail:
                message = f"{message}: {detail}"
        super().__init__(message)


class CommandLaunchError(ExecFailureError):
    """The OS refused to start the command at all (missing binary, access denied)."""

    def __init__(self, command: Sequence[str], reason: str):
        program = command[0] if command else "command"
        super().__init__(
            command, None, reason, message=f"Could not start {program}: {reason}"
        )


class CommandTimeoutError(MountifyError):
    def __init__(self, command: Sequence[str], timeout: float):
        self.command = list(command)
        self.timeout = timeout
        super().__init__(f"Command did not finish within {timeout:g}s")


class VerificationFailureError(MountifyError):
    """The command claimed success but the follow-up OS query disagrees."""


class DownloadFailureError(MountifyError):
    pass


class InstallFailureError(MountifyError):
    def __init__(self, returncode: Optional[int], stderr_tail: str = ""):
        self.returncode = returncode
        self.stderr_tail = stderr_tail
        message = f"Installation failed with code {returncode}"
        if stderr_tail:
            message = f"{message}. stderr: {stderr_tail}"
        super().__init__(message)


class ConnectionTimeoutError(MountifyError):
    def __init__(self):
        super().__init__("Connection timeout")


class UnknownDependencyError(MountifyError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown dependency: {name}")


class OperationInProgressError(MountifyError):
    def __init__(self, server_id: str, phase: str):
        self.server_id = server_id
        self.phase = phase
        super().__init__("Another operation is already in progress for this server")


class InvalidTransitionError(MountifyError):
    """Raised when a mount phase transition is not allowed."""

    def __init__(self, server_id: str, from_phase: str, to_phase: str):
        self.server_id = server_id
        self.from_phase = from_phase
        self.to_phase = to_phase
        super().__init__(
            f"Invalid mount phase transition for {server_id}: "
            f"Cannot move from '{from_phase}' to '{to_phase}'."
        )
