from fastapi import APIRouter, Depends

from classpoints.api.deps import Principal, get_current_user, get_services
from classpoints.core.security import create_access_token
from classpoints.schemas.auth import StudentLoginRequest, TeacherLoginRequest
from classpoints.schemas.common import ok
from classpoints.services.container import ServiceContainer

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/student-login")
def student_login(payload: StudentLoginRequest, services: ServiceContainer = Depends(get_services)):
    student = services.accounts.authenticate_student(payload.student_id)
    token = create_access_token(subject=student.id, user_type="student", name=student.name)
    return ok(
        {
            "token": token,
            "userType": "student",
            "userInfo": {"id": student.id, "name": student.name, "class": student.class_name, "balance": student.balance},
        },
        message="Login successful",
    )


@router.post("/teacher-login")
def teacher_login(payload: TeacherLoginRequest, services: ServiceContainer = Depends(get_services)):
    teacher = services.accounts.authenticate_teacher(payload.teacher_id, payload.password)
    token = create_access_token(subject=teacher.id, user_type="teacher", name=teacher.name)
    return ok(
        {
            "token": token,
            "userType": "teacher",
            "userInfo": {"id": teacher.id, "name": teacher.name, "role": teacher.role},
        },
        message="Login successful",
    )


@router.get("/verify")
def verify(user: Principal = Depends(get_current_user)):
    return ok(user.to_json())


@router.post("/logout")
def logout():
    # tokens are stateless; clients drop theirs
    return ok(message="Logout successful")
