from fastapi import APIRouter, BackgroundTasks, Depends

from classpoints.api.deps import Principal, get_optional_user, get_services, require_teacher
from classpoints.core.exceptions import AuthenticationError, AuthorizationError, ResetDisabled
from classpoints.schemas.common import ok
from classpoints.schemas.config import ConfigUpdate, ModeRequest, ResetToggleRequest
from classpoints.schemas.points import ResetPointsRequest
from classpoints.services.container import ServiceContainer

router = APIRouter(prefix="/config", tags=["config"])


@router.get("/mode")
def get_mode(services: ServiceContainer = Depends(get_services)):
    config = services.config.get()
    return ok({"mode": config.mode, "modeText": config.mode_label})


@router.post("/mode")
def set_mode(
    payload: ModeRequest,
    services: ServiceContainer = Depends(get_services),
    user: Principal | None = Depends(get_optional_user),
):
    if payload.mode == "class":
        if user is None:
            raise AuthenticationError("Teacher login required to enter class mode", code="TOKEN_MISSING")
        if not user.is_teacher:
            raise AuthorizationError("Teacher permission required", code="TEACHER_REQUIRED")
    config = services.config.set_mode(payload.mode, user.user_id if user else None)
    return ok({"mode": config.mode, "modeText": config.mode_label}, message="Mode updated")


@router.get("", dependencies=[Depends(require_teacher)])
def get_config(services: ServiceContainer = Depends(get_services)):
    return ok(services.config.get().to_json())


@router.put("")
def update_config(
    payload: ConfigUpdate,
    services: ServiceContainer = Depends(get_services),
    teacher: Principal = Depends(require_teacher),
):
    config = services.config.update(payload.model_dump(exclude_none=True), teacher.user_id)
    return ok(config.to_json(), message="Config updated")


@router.post("/reset-points")
def reset_points(
    background_tasks: BackgroundTasks,
    payload: ResetPointsRequest | None = None,
    services: ServiceContainer = Depends(get_services),
    teacher: Principal = Depends(require_teacher),
):
    if not services.config.get().points_reset_enabled:
        raise ResetDisabled()
    payload = payload or ResetPointsRequest()
    records = services.ledger.reset_all(teacher.user_id, payload.reason)
    background_tasks.add_task(services.broadcast_rankings)
    return ok({"affectedStudents": len(records), "records": [record.to_json() for record in records]}, message="Points reset")


@router.post("/reset-points/toggle")
def toggle_reset(
    payload: ResetToggleRequest | None = None,
    services: ServiceContainer = Depends(get_services),
    teacher: Principal = Depends(require_teacher),
):
    config = services.config.toggle_reset(payload.enabled if payload else None, teacher.user_id)
    return ok({"pointsResetEnabled": config.points_reset_enabled})
