import logging

from fastapi import APIRouter, Depends

from mountify.config import Settings
from mountify.dependencies import get_settings

router = APIRouter(prefix="/api", tags=["uiactions"])


@router.get("/settings", response_model=Settings)
async def read_settings(settings: Settings = Depends(get_settings)):
    """Get current application settings"""

    logging.info("Settings endpoint called", extra={"operation": "api_settings"})
    return settings
