from functools import lru_cache
from typing import Any, Dict

from mountify.core.events.event_bus import DomainEventBus
from mountify.core.mount_state_machine import MountStateMachine
from mountify.core.server_registry import ServerRegistry

from .config import Settings
from .domains.presentation.event_handlers import PresentationEventHandlers
from .domains.presentation.websocket_manager import WebSocketManager
from .services.connectivity import ConnectivityProber
from .services.network_mount import DriveLetterAllocator, MountController, NetUseClient
from .services.process_runner import ProcessRunner
from .services.provisioning import (
    DependencyProvisioner,
    InstallerDownloader,
    build_prerequisites,
)
from .services.server_profiles import ServerProfileService
from .services.startup import StartupService

# Global singleton instances
_singletons: Dict[str, Any] = {}


@lru_cache
def get_settings() -> Settings:
    """Get the Settings singleton instance."""
    return Settings()


def get_event_bus() -> DomainEventBus:
    if "event_bus" not in _singletons:
        _singletons["event_bus"] = DomainEventBus()
    return _singletons["event_bus"]


def get_process_runner() -> ProcessRunner:
    if "process_runner" not in _singletons:
        settings = get_settings()
        _singletons["process_runner"] = ProcessRunner(
            default_timeout=settings.command_timeout_seconds
        )
    return _singletons["process_runner"]


def get_server_registry() -> ServerRegistry:
    if "server_registry" not in _singletons:
        settings = get_settings()
        _singletons["server_registry"] = ServerRegistry(settings.servers_file_path)
    return _singletons["server_registry"]


def get_mount_state_machine() -> MountStateMachine:
    if "mount_state_machine" not in _singletons:
        _singletons["mount_state_machine"] = MountStateMachine()
    return _singletons["mount_state_machine"]


def get_net_use_client() -> NetUseClient:
    if "net_use_client" not in _singletons:
        _singletons["net_use_client"] = NetUseClient(
            runner=get_process_runner(),
            command_timeout=get_settings().command_timeout_seconds,
        )
    return _singletons["net_use_client"]


def get_drive_letter_allocator() -> DriveLetterAllocator:
    if "drive_letter_allocator" not in _singletons:
        _singletons["drive_letter_allocator"] = DriveLetterAllocator(runner=get_process_runner())
    return _singletons["drive_letter_allocator"]


def get_mount_controller() -> MountController:
    if "mount_controller" not in _singletons:
        settings = get_settings()
        _singletons["mount_controller"] = MountController(
            registry=get_server_registry(),
            net_use=get_net_use_client(),
            state_machine=get_mount_state_machine(),
            event_bus=get_event_bus(),
            settle_delay_seconds=settings.settle_delay_seconds,
        )
    return _singletons["mount_controller"]


def get_server_profile_service() -> ServerProfileService:
    if "server_profile_service" not in _singletons:
        _singletons["server_profile_service"] = ServerProfileService(
            registry=get_server_registry(),
            mount_controller=get_mount_controller(),
            event_bus=get_event_bus(),
            default_port=get_settings().default_port,
        )
    return _singletons["server_profile_service"]


def get_connectivity_prober() -> ConnectivityProber:
    if "connectivity_prober" not in _singletons:
        _singletons["connectivity_prober"] = ConnectivityProber()
    return _singletons["connectivity_prober"]


def get_provisioner() -> DependencyProvisioner:
    if "provisioner" not in _singletons:
        settings = get_settings()
        _singletons["provisioner"] = DependencyProvisioner(
            prerequisites=build_prerequisites(settings),
            downloader=InstallerDownloader(timeout_seconds=settings.download_timeout_seconds),
            runner=get_process_runner(),
            event_bus=get_event_bus(),
            download_directory=settings.download_directory,
        )
    return _singletons["provisioner"]


def get_startup_service() -> StartupService:
    if "startup_service" not in _singletons:
        settings = get_settings()
        _singletons["startup_service"] = StartupService(
            registry=get_server_registry(),
            mount_controller=get_mount_controller(),
            provisioner=get_provisioner(),
            auto_mount_delay_seconds=settings.auto_mount_delay_seconds,
            auto_install_dependencies=settings.auto_install_dependencies,
        )
    return _singletons["startup_service"]


def get_websocket_manager() -> WebSocketManager:
    if "websocket_manager" not in _singletons:
        _singletons["websocket_manager"] = WebSocketManager()
    return _singletons["websocket_manager"]


def get_presentation_event_handlers() -> PresentationEventHandlers:
    if "presentation_event_handlers" not in _singletons:
        _singletons["presentation_event_handlers"] = PresentationEventHandlers(
            websocket_manager=get_websocket_manager(),
            show_notifications=get_settings().show_notifications,
        )
    return _singletons["presentation_event_handlers"]


def reset_singletons() -> None:
    global _singletons
    _singletons.clear()
