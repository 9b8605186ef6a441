from fastapi import APIRouter, Depends

from classpoints.api.deps import get_services
from classpoints.schemas.common import ok
from classpoints.services.container import ServiceContainer

router = APIRouter(tags=["system"])


@router.get("/health")
def health(services: ServiceContainer = Depends(get_services)):
    return {"success": True, "status": "ok", "version": services.settings.app_version}


@router.get("/system/info")
def system_info(services: ServiceContainer = Depends(get_services)):
    settings = services.settings
    config = services.config.get()
    return ok(
        {
            "appName": settings.app_name,
            "appEnv": settings.app_env,
            "appVersion": settings.app_version,
            "dataDir": str(settings.data_path),
            "timezone": settings.timezone,
            "weekStart": settings.week_start,
            "mode": config.mode,
            "className": config.class_name,
            "sseConnections": services.bus.count,
            "store": services.store.metrics(),
        }
    )
