from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


WINFSP_MSI_URL = (
    "https://github.com/winfsp/winfsp/releases/download/v2.0/winfsp-2.0.23075.msi"
)
SSHFS_WIN_MSI_URL = (
    "https://github.com/winfsp/sshfs-win/releases/download/v3.7.21011/"
    "sshfs-win-3.7.21011-x64.msi"
)


class Settings(BaseSettings):
    # Application preferences (owned by the UI, read-only here)
    start_with_windows: bool = False
    start_minimized: bool = False
    minimize_to_tray: bool = True
    show_notifications: bool = True
    connection_timeout: int = 10000  # milliseconds
    default_port: int = 22

    # Server registry
    servers_file_path: str = "data/servers.json"

    # Mount behaviour
    settle_delay_ms: int = 500  # wait between removing and re-creating a mapping
    command_timeout_seconds: float = 60.0  # upper bound for a single OS command
    auto_mount_delay_seconds: float = 2.0

    # Dependency provisioning
    winfsp_download_url: str = WINFSP_MSI_URL
    sshfs_win_download_url: str = SSHFS_WIN_MSI_URL
    download_directory: str = ""  # empty = system temp directory
    download_timeout_seconds: int = 120
    auto_install_dependencies: bool = True

    # Logging
    log_level: str = "INFO"
    log_file_path: str = "logs/mountify.log"
    log_retention_days: int = 30

    # Local API
    api_host: str = "127.0.0.1"
    api_port: int = 8765

    model_config = SettingsConfigDict(env_file="settings.env", extra="ignore")

    @property
    def log_directory(self) -> Path:
        """Directory holding the rotating log files."""
        return Path(self.log_file_path).parent

    @property
    def settle_delay_seconds(self) -> float:
        return self.settle_delay_ms / 1000
