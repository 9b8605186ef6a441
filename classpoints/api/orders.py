from fastapi import APIRouter, BackgroundTasks, Depends, Query, status

from classpoints.api.deps import Principal, ensure_self_or_teacher, get_current_user, get_services, require_teacher
from classpoints.core.exceptions import AuthorizationError
from classpoints.models import OrderStatus
from classpoints.schemas.common import ok
from classpoints.schemas.orders import CancelRequest, ReserveRequest
from classpoints.services.container import ServiceContainer

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("/reserve", status_code=status.HTTP_201_CREATED)
def reserve(
    payload: ReserveRequest,
    background_tasks: BackgroundTasks,
    services: ServiceContainer = Depends(get_services),
    user: Principal = Depends(get_current_user),
):
    ensure_self_or_teacher(user, payload.student_id)
    order = services.reservations.reserve(payload.student_id.strip(), payload.product_id.strip())
    background_tasks.add_task(services.broadcast_rankings)
    return ok(services.reservations.details(order), message="Reservation created")


@router.get("/pending", dependencies=[Depends(require_teacher)])
def pending(services: ServiceContainer = Depends(get_services)):
    orders = services.reservations.pending_with_details()
    return ok({"orders": orders, "total": len(orders)})


@router.get("/statistics", dependencies=[Depends(require_teacher)])
def statistics(services: ServiceContainer = Depends(get_services)):
    return ok(services.reservations.statistics())


@router.get("")
def list_orders(
    status_filter: OrderStatus | None = Query(None, alias="status"),
    student_id: str | None = Query(None, alias="studentId"),
    services: ServiceContainer = Depends(get_services),
    user: Principal = Depends(get_current_user),
):
    if not user.is_teacher:
        student_id = user.user_id
    orders = services.reservations.list(status=status_filter, student_id=student_id)
    return ok({"orders": [services.reservations.details(order) for order in orders], "total": len(orders)})


@router.get("/{order_id}")
def get_order(
    order_id: str,
    services: ServiceContainer = Depends(get_services),
    user: Principal = Depends(get_current_user),
):
    order = services.reservations.get(order_id)
    ensure_self_or_teacher(user, order.student_id)
    return ok(services.reservations.details(order))


@router.post("/{order_id}/confirm")
def confirm(
    order_id: str,
    background_tasks: BackgroundTasks,
    services: ServiceContainer = Depends(get_services),
    teacher: Principal = Depends(require_teacher),
):
    order = services.reservations.confirm(order_id, teacher.user_id)
    background_tasks.add_task(services.broadcast_rankings)
    return ok(services.reservations.details(order), message="Order confirmed")


@router.post("/{order_id}/cancel")
def cancel(
    order_id: str,
    background_tasks: BackgroundTasks,
    payload: CancelRequest | None = None,
    services: ServiceContainer = Depends(get_services),
    user: Principal = Depends(get_current_user),
):
    order = services.reservations.get(order_id)
    if not user.is_teacher and user.user_id != order.student_id:
        raise AuthorizationError("Only the owner or a teacher may cancel this order", code="PERMISSION_DENIED")
    order = services.reservations.cancel(order_id, user.user_id)
    background_tasks.add_task(services.broadcast_rankings)
    return ok(services.reservations.details(order), message="Order cancelled")
