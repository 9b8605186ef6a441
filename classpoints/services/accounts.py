import logging

from classpoints.core.exceptions import AuthenticationError
from classpoints.core.security import hash_password, verify_password
from classpoints.db.documents import STUDENTS, TEACHERS
from classpoints.db.store import JsonStore
from classpoints.models import Student, TeacherAccount

logger = logging.getLogger(__name__)


class AccountService:
    def __init__(self, store: JsonStore):
        self.store = store

    def ensure_teacher(self, teacher_id: str, password: str, name: str, reset_password: bool = False) -> str:
        """Creates the account if missing; returns "created", "updated" or "exists"."""
        with self.store.transaction(TEACHERS):
            document = self.store.read(TEACHERS)
            existing = document.find(teacher_id)
            if existing and not reset_password:
                return "exists"
            if existing:
                existing.password_hash = hash_password(password)
                existing.is_active = True
                action = "updated"
            else:
                document.teachers.append(
                    TeacherAccount(id=teacher_id, name=name, password_hash=hash_password(password), role="admin")
                )
                action = "created"
            self.store.write(TEACHERS, document)
        logger.info("Teacher account %s %s", teacher_id, action)
        return action

    def authenticate_teacher(self, teacher_id: str, password: str) -> TeacherAccount:
        teacher = self.store.read(TEACHERS).find(teacher_id)
        if not teacher or not teacher.is_active or not verify_password(password, teacher.password_hash):
            logger.warning("Failed teacher login for %s", teacher_id)
            raise AuthenticationError("Invalid teacher id or password", code="INVALID_CREDENTIALS")
        return teacher

    def authenticate_student(self, student_id: str) -> Student:
        student = self.store.read(STUDENTS).find(student_id.strip())
        if not student:
            logger.warning("Failed student login for %s", student_id)
            raise AuthenticationError("Unknown student id", code="INVALID_CREDENTIALS")
        return student

    def teacher(self, teacher_id: str) -> TeacherAccount | None:
        return self.store.read(TEACHERS).find(teacher_id)
