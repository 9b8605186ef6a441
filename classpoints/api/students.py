from fastapi import APIRouter, BackgroundTasks, Depends, Query

from classpoints.api.deps import Principal, ensure_self_or_teacher, get_current_user, get_services, require_teacher
from classpoints.schemas.common import ok
from classpoints.schemas.students import StudentBatchCreate, StudentCreate, StudentUpdate
from classpoints.services.container import ServiceContainer

router = APIRouter(prefix="/students", tags=["students"])


@router.get("", dependencies=[Depends(require_teacher)])
def list_students(
    class_name: str | None = Query(None, alias="class"),
    search: str | None = Query(None, max_length=64),
    services: ServiceContainer = Depends(get_services),
):
    students = services.students.list(class_name=class_name, search=search)
    return ok({"students": [student.to_json() for student in students], "total": len(students)})


@router.get("/statistics", dependencies=[Depends(require_teacher)])
def statistics(services: ServiceContainer = Depends(get_services)):
    return ok(services.students.statistics())


@router.post("/batch", dependencies=[Depends(require_teacher)])
def batch_create(payload: StudentBatchCreate, services: ServiceContainer = Depends(get_services)):
    entries = [{"id": item.id, "name": item.name, "class_name": item.class_name} for item in payload.students]
    return ok(services.students.batch_create(entries), message="Batch create finished")


@router.get("/{student_id}")
def get_student(
    student_id: str,
    services: ServiceContainer = Depends(get_services),
    user: Principal = Depends(get_current_user),
):
    ensure_self_or_teacher(user, student_id)
    student = services.students.get(student_id)
    data = student.to_json()
    data["frozen"] = services.reservations.frozen_of(student_id)
    return ok(data)


@router.get("/{student_id}/rank")
def student_rank(
    student_id: str,
    services: ServiceContainer = Depends(get_services),
    user: Principal = Depends(get_current_user),
):
    ensure_self_or_teacher(user, student_id)
    return ok(services.rankings.student_rank(student_id))


@router.post("", status_code=201, dependencies=[Depends(require_teacher)])
def create_student(
    payload: StudentCreate,
    background_tasks: BackgroundTasks,
    services: ServiceContainer = Depends(get_services),
):
    student = services.students.create(payload.id, payload.name, payload.class_name)
    background_tasks.add_task(services.broadcast_rankings)
    return ok(student.to_json(), message="Student created")


@router.put("/{student_id}", dependencies=[Depends(require_teacher)])
def update_student(
    student_id: str,
    payload: StudentUpdate,
    background_tasks: BackgroundTasks,
    services: ServiceContainer = Depends(get_services),
):
    student = services.students.update(student_id, name=payload.name, class_name=payload.class_name)
    background_tasks.add_task(services.broadcast_rankings)
    return ok(student.to_json(), message="Student updated")


@router.delete("/{student_id}", dependencies=[Depends(require_teacher)])
def delete_student(
    student_id: str,
    background_tasks: BackgroundTasks,
    services: ServiceContainer = Depends(get_services),
):
    student = services.students.delete(student_id)
    background_tasks.add_task(services.broadcast_rankings)
    return ok({"id": student.id, "name": student.name}, message="Student deleted")
