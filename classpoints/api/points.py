from datetime import date, timedelta

from fastapi import APIRouter, BackgroundTasks, Depends, Query

from classpoints.api.deps import Principal, ensure_self_or_teacher, get_current_user, get_services, require_teacher
from classpoints.schemas.common import ok
from classpoints.schemas.points import BatchPointsRequest, PointsChangeRequest
from classpoints.services.container import ServiceContainer
from classpoints.services.ledger import PointOperation
from classpoints.services.rankings import parse_view

router = APIRouter(prefix="/points", tags=["points"])


@router.post("/add")
def add_points(
    payload: PointsChangeRequest,
    background_tasks: BackgroundTasks,
    services: ServiceContainer = Depends(get_services),
    teacher: Principal = Depends(require_teacher),
):
    record, balance = services.ledger.add_points(payload.student_id, payload.points, payload.reason, teacher.user_id)
    background_tasks.add_task(services.broadcast_rankings)
    return ok({"record": record.to_json(), "newBalance": balance}, message="Points added")


@router.post("/subtract")
def subtract_points(
    payload: PointsChangeRequest,
    background_tasks: BackgroundTasks,
    services: ServiceContainer = Depends(get_services),
    teacher: Principal = Depends(require_teacher),
):
    record, balance = services.ledger.subtract_points(
        payload.student_id, payload.points, payload.reason, teacher.user_id
    )
    background_tasks.add_task(services.broadcast_rankings)
    return ok({"record": record.to_json(), "newBalance": balance}, message="Points subtracted")


@router.post("/batch-add")
def batch_add(
    payload: BatchPointsRequest,
    background_tasks: BackgroundTasks,
    services: ServiceContainer = Depends(get_services),
    teacher: Principal = Depends(require_teacher),
):
    operations = [PointOperation(op.student_id.strip(), op.points, op.reason.strip()) for op in payload.operations]
    result = services.ledger.batch_append(operations, teacher.user_id)
    if result.succeeded:
        background_tasks.add_task(services.broadcast_rankings)
    return ok(result.to_json(), message="Batch operation finished")


@router.get("/rankings")
def rankings(
    type: str = Query("total"),
    limit: int = Query(50, ge=1, le=100),
    services: ServiceContainer = Depends(get_services),
):
    view = parse_view(type)
    entries = services.rankings.get(view, limit)
    return ok({"type": view.value, "rankings": entries, "total": len(entries)})


@router.get("/rankings/all")
def all_rankings(
    limit: int = Query(50, ge=1, le=100),
    services: ServiceContainer = Depends(get_services),
):
    return ok(services.rankings.all_rankings(limit))


@router.get("/rankings/{type}")
def rankings_by_type(
    type: str,
    limit: int = Query(50, ge=1, le=100),
    services: ServiceContainer = Depends(get_services),
):
    return rankings(type=type, limit=limit, services=services)


@router.get("/history/{student_id}")
def history(
    student_id: str,
    limit: int = Query(50, ge=1, le=100),
    services: ServiceContainer = Depends(get_services),
    user: Principal = Depends(get_current_user),
):
    ensure_self_or_teacher(user, student_id)
    services.students.get(student_id)
    records = services.ledger.history_of(student_id, limit)
    return ok({"studentId": student_id, "records": [record.to_json() for record in records], "total": len(records)})


@router.get("/rank/{student_id}")
def student_rank(
    student_id: str,
    services: ServiceContainer = Depends(get_services),
    user: Principal = Depends(get_current_user),
):
    ensure_self_or_teacher(user, student_id)
    return ok(services.rankings.student_rank(student_id))


@router.get("/balance/{student_id}")
def balance(
    student_id: str,
    services: ServiceContainer = Depends(get_services),
    user: Principal = Depends(get_current_user),
):
    ensure_self_or_teacher(user, student_id)
    student = services.students.get(student_id)
    return ok(
        {
            "studentId": student_id,
            "balance": student.balance,
            "ledgerTotal": services.ledger.balance_of(student_id),
            "frozen": services.reservations.frozen_of(student_id),
        }
    )


@router.get("/records", dependencies=[Depends(require_teacher)])
def records(
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    student_id: str | None = Query(None, alias="studentId"),
    services: ServiceContainer = Depends(get_services),
):
    rankings_service = services.rankings
    start = rankings_service.local_midnight(start_date) if start_date else None
    end = (
        rankings_service.local_midnight(end_date + timedelta(days=1)) - timedelta(microseconds=1)
        if end_date
        else None
    )
    selected = services.ledger.records_between(start, end, student_id)
    return ok(
        {
            "records": [record.to_json() for record in selected],
            "total": len(selected),
            "startDate": start_date.isoformat() if start_date else None,
            "endDate": end_date.isoformat() if end_date else None,
        }
    )


@router.get("/statistics", dependencies=[Depends(require_teacher)])
def statistics(services: ServiceContainer = Depends(get_services)):
    return ok(services.ledger.statistics())


@router.post("/reconcile")
def reconcile(
    background_tasks: BackgroundTasks,
    services: ServiceContainer = Depends(get_services),
    _: Principal = Depends(require_teacher),
):
    corrections = services.ledger.reconcile()
    if corrections:
        background_tasks.add_task(services.broadcast_rankings)
    return ok({"corrections": corrections, "corrected": len(corrections)})
