from dataclasses import dataclass

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from classpoints.core.exceptions import AuthenticationError, AuthorizationError
from classpoints.core.security import USER_TYPES, decode_access_token
from classpoints.services.container import ServiceContainer

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    user_id: str
    user_type: str
    name: str | None = None

    @property
    def is_teacher(self) -> bool:
        return self.user_type == "teacher"

    def to_json(self) -> dict:
        return {"userId": self.user_id, "userType": self.user_type, "name": self.name}


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def _principal_from_token(token: str) -> Principal:
    try:
        payload = decode_access_token(token)
    except jwt.ExpiredSignatureError as exc:
        raise AuthenticationError("Token expired", code="TOKEN_EXPIRED") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthenticationError("Invalid token", code="TOKEN_INVALID") from exc

    user_id = payload.get("sub")
    user_type = payload.get("userType")
    if not user_id or user_type not in USER_TYPES:
        raise AuthenticationError("Invalid token payload", code="TOKEN_INVALID")
    return Principal(user_id=user_id, user_type=user_type, name=payload.get("name"))


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Principal:
    if credentials is None:
        raise AuthenticationError("Missing authorization token", code="TOKEN_MISSING")
    return _principal_from_token(credentials.credentials)


def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Principal | None:
    if credentials is None:
        return None
    return _principal_from_token(credentials.credentials)


def require_teacher(user: Principal = Depends(get_current_user)) -> Principal:
    if not user.is_teacher:
        raise AuthorizationError("Teacher permission required", code="TEACHER_REQUIRED")
    return user


def ensure_self_or_teacher(user: Principal, student_id: str) -> None:
    if user.is_teacher:
        return
    if user.user_id != student_id:
        raise AuthorizationError("Students may only access their own data", code="PERMISSION_DENIED")
