import re
from enum import Enum
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
# Characters that would re-split or re-quote the \\sshfs\user@host!port/path target
_HOST_FORBIDDEN = re.compile(r"[\s\"'\\/@!]")
_USER_FORBIDDEN = re.compile(r"[\"\\@!]")
_PATH_FORBIDDEN = re.compile(r"[\"\\]")


def new_server_id() -> str:
    return uuid4().hex


class MountPhase(str, Enum):
    """
    Transient phase of a single mount or unmount operation.

    Mount:   Idle -> ForceUnmounting -> Mapping -> Verifying -> Mounted | Failed
    Unmount: Idle -> Unmapping -> Verifying -> Unmounted | Failed
    """

    IDLE = "Idle"
    FORCE_UNMOUNTING = "ForceUnmounting"
    MAPPING = "Mapping"
    UNMAPPING = "Unmapping"
    VERIFYING = "Verifying"
    MOUNTED = "Mounted"
    UNMOUNTED = "Unmounted"
    FAILED = "Failed"


class DependencyStatus(str, Enum):
    """Progress states published while provisioning prerequisites."""

    DOWNLOADING = "downloading"
    INSTALLING = "installing"
    COMPLETE = "complete"
    UNINSTALLING = "uninstalling"
    UNINSTALL_COMPLETE = "uninstall-complete"
    ERROR = "error"


class ServerProfile(BaseModel):
    """
    One configured remote share.

    ``is_mounted`` is the last verified state written by the MountController,
    never a live probe. The password is kept as a SecretStr so it cannot leak
    through repr() or default serialization.
    """

    id: Optional[str] = Field(
        default=None, description="Stable identifier, assigned once by the registry"
    )
    name: str = Field(..., min_length=1, description="Display name")
    host: str = Field(..., min_length=1, description="SFTP host name or address")
    port: int = Field(default=22, ge=1, le=65535, description="SFTP port")
    username: str = Field(..., min_length=1, description="SFTP user")
    password: SecretStr = Field(
        default=SecretStr(""), description="SFTP password (never logged or echoed)"
    )
    drive_letter: str = Field(default="S", description="Local drive letter A-Z")
    remote_path: str = Field(default="/", description="Remote directory to map")
    drive_label: str = Field(default="", description="Display-only label")
    auto_mount: bool = Field(default=False, description="Mount at startup")
    is_mounted: bool = Field(
        default=False, description="Last verified mount state (set by MountController)"
    )

    @field_validator("drive_letter", mode="before")
    @classmethod
    def _normalize_drive_letter(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip().rstrip(":").upper()
            if len(value) != 1 or not ("A" <= value <= "Z"):
                raise ValueError("drive_letter must be a single letter A-Z")
        return value

    @field_validator("host")
    @classmethod
    def _validate_host(cls, value: str) -> str:
        value = value.strip()
        if not value or _HOST_FORBIDDEN.search(value) or _CONTROL_CHARS.search(value):
            raise ValueError("host contains characters that are not allowed")
        return value

    @field_validator("username")
    @classmethod
    def _validate_username(cls, value: str) -> str:
        if _USER_FORBIDDEN.search(value) or _CONTROL_CHARS.search(value):
            raise ValueError("username contains characters that are not allowed")
        return value

    @field_validator("remote_path", mode="before")
    @classmethod
    def _validate_remote_path(cls, value: Any) -> Any:
        if value is None or value == "":
            return "/"
        if isinstance(value, str):
            if not value.startswith("/"):
                value = "/" + value
            if _PATH_FORBIDDEN.search(value) or _CONTROL_CHARS.search(value):
                raise ValueError("remote_path contains characters that are not allowed")
        return value

    @property
    def unc_path(self) -> str:
        """UNC target understood by SSHFS-Win: \\\\sshfs\\user@host!port/path"""
        return f"\\\\sshfs\\{self.username}@{self.host}!{self.port}{self.remote_path}"

    @property
    def drive(self) -> str:
        return f"{self.drive_letter}:"

    def to_public_dict(self) -> Dict[str, Any]:
        """Serializable view without the password, used for API responses and events."""
        return self.model_dump(mode="json", exclude={"password"})

    def to_storage_dict(self) -> Dict[str, Any]:
        data = self.model_dump(mode="json")
        data["password"] = self.password.get_secret_value()
        return data


class DependencyState(BaseModel):
    """Result of one presence probe. Recomputed on every check, never cached."""

    name: str
    installed: bool


class MountResult(BaseModel):
    server_id: str
    success: bool
    error: Optional[str] = None


class ConnectionTestResult(BaseModel):
    success: bool
    error: Optional[str] = None


class UninstallResult(BaseModel):
    success: bool
    error: Optional[str] = None


class ConnectionTestRequest(BaseModel):
    """Subset of a profile needed for a reachability probe."""

    host: str = Field(..., min_length=1)
    port: Optional[int] = Field(default=None, ge=1, le=65535)

    model_config = ConfigDict(extra="ignore")
