import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query

from mountify.config import Settings
from mountify.core.exceptions import ServerNotFoundError
from mountify.core.server_registry import ServerRegistry
from mountify.dependencies import (
    get_connectivity_prober,
    get_drive_letter_allocator,
    get_mount_controller,
    get_server_profile_service,
    get_server_registry,
    get_settings,
)
from mountify.models import ConnectionTestRequest, ConnectionTestResult, ServerProfile
from mountify.services.connectivity import ConnectivityProber
from mountify.services.network_mount import (
    DriveLetterAllocator,
    MountController,
    merge_current_letter,
)
from mountify.services.server_profiles import ServerProfileService

router = APIRouter(prefix="/api", tags=["servers"])


async def _require_server(registry: ServerRegistry, server_id: str) -> ServerProfile:
    profile = await registry.get_by_id(server_id)
    if profile is None:
        raise HTTPException(status_code=404, detail=str(ServerNotFoundError(server_id)))
    return profile


@router.get("/servers")
async def list_servers(
    service: ServerProfileService = Depends(get_server_profile_service),
) -> List[Dict[str, Any]]:
    servers = await service.list()
    return [server.to_public_dict() for server in servers]


@router.post("/servers")
async def save_server(
    profile: ServerProfile,
    service: ServerProfileService = Depends(get_server_profile_service),
) -> Dict[str, Any]:
    """Create a profile (no id) or update an existing one."""
    saved = await service.save(profile)
    logging.info(f"Saved server profile '{saved.name}'", extra={"operation": "api_save_server"})
    return saved.to_public_dict()


@router.delete("/servers/{server_id}")
async def delete_server(
    server_id: str,
    service: ServerProfileService = Depends(get_server_profile_service),
):
    try:
        await service.delete(server_id)
    except ServerNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True}


@router.post("/servers/test-connection", response_model=ConnectionTestResult)
async def test_connection(
    request: ConnectionTestRequest,
    prober: ConnectivityProber = Depends(get_connectivity_prober),
    settings: Settings = Depends(get_settings),
):
    port = request.port or settings.default_port
    return await prober.test_connection(request.host, port, settings.connection_timeout)


@router.post("/servers/{server_id}/mount", status_code=202)
async def mount_server(
    server_id: str,
    background_tasks: BackgroundTasks,
    registry: ServerRegistry = Depends(get_server_registry),
    controller: MountController = Depends(get_mount_controller),
):
    """Start a mount; the outcome arrives as a mount-result WebSocket message."""
    await _require_server(registry, server_id)
    background_tasks.add_task(controller.mount, server_id)
    return {"accepted": True, "server_id": server_id}


@router.post("/servers/{server_id}/unmount", status_code=202)
async def unmount_server(
    server_id: str,
    background_tasks: BackgroundTasks,
    registry: ServerRegistry = Depends(get_server_registry),
    controller: MountController = Depends(get_mount_controller),
):
    await _require_server(registry, server_id)
    background_tasks.add_task(controller.unmount, server_id)
    return {"accepted": True, "server_id": server_id}


@router.get("/drives")
async def available_drives(
    current: Optional[str] = Query(default=None, description="Letter of the profile being edited"),
    allocator: DriveLetterAllocator = Depends(get_drive_letter_allocator),
) -> List[str]:
    available = await allocator.available_letters()
    return merge_current_letter(available, current)
