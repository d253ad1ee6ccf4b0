import logging

from fastapi import APIRouter, BackgroundTasks, Depends

from mountify.dependencies import get_provisioner
from mountify.models import UninstallResult
from mountify.services.provisioning import DependencyProvisioner

router = APIRouter(prefix="/api/dependencies", tags=["dependencies"])


@router.get("")
async def dependency_status(provisioner: DependencyProvisioner = Depends(get_provisioner)):
    """Installed flags for each prerequisite, e.g. ``{"winfsp": true, "sshfs": false}``."""
    status = await provisioner.check_all()
    return {**status, "installing": provisioner.is_installing()}


@router.post("/install", status_code=202)
async def install_dependencies(
    background_tasks: BackgroundTasks,
    provisioner: DependencyProvisioner = Depends(get_provisioner),
):
    """Start installing the missing prerequisites; progress arrives as dependency-status messages."""
    if provisioner.is_installing():
        return {"accepted": False, "message": "Installation already in progress"}

    background_tasks.add_task(provisioner.install_missing)
    logging.info("Dependency installation requested", extra={"operation": "api_install_dependencies"})
    return {"accepted": True}


@router.post("/{name}/uninstall", response_model=UninstallResult)
async def uninstall_dependency(
    name: str, provisioner: DependencyProvisioner = Depends(get_provisioner)
):
    return await provisioner.uninstall(name)
