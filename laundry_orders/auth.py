"""
Authentication and authorization utilities for the laundry orders service.

Validates JWT tokens issued by the identity provider. The token is the only
trusted source of the caller's role and of its pressing/plant assignment.
"""
import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel

from .exceptions import ForbiddenError
from .workflow import Role

logger = logging.getLogger(__name__)

# JWT settings (must match the identity provider)
SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me-laundry-orders-dev-secret")
ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "480"))

# Security scheme for JWT bearer tokens
security = HTTPBearer()


class CurrentUser(BaseModel):
    """
    Current authenticated staff member.

    Attributes:
        id (int): User ID (the token subject)
        name (str): Display name, recorded in the status history
        role (Role): ADMIN, SUPERVISOR or PLANT_OPERATOR
        pressing_id (int): Pressing the user works at (supervisors)
        plant_id (int): Plant the user works at (plant operators)
        token (str): Raw bearer token
    """
    id: int
    name: str
    role: Role
    pressing_id: Optional[int] = None
    plant_id: Optional[int] = None
    token: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: Dictionary containing the claims to encode in the token
        expires_delta: Optional custom expiration time delta

    Returns:
        Encoded JWT token string
    """
    to_encode = data.copy()
    if expires_delta is None:
        expires_delta = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": datetime.now(timezone.utc) + expires_delta})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def _optional_int(value) -> Optional[int]:
    return int(value) if value is not None else None


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> CurrentUser:
    """
    FastAPI dependency to get the current authenticated user from JWT token.

    Args:
        credentials: HTTP Authorization credentials (injected)

    Returns:
        Current authenticated user information

    Raises:
        HTTPException: 401 if token is invalid
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        token = credentials.credentials
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        user_id_str: str = payload.get("sub")
        role: str = payload.get("role")

        if user_id_str is None or role is None:
            raise credentials_exception

        return CurrentUser(
            id=int(user_id_str),
            name=payload.get("name") or f"user-{user_id_str}",
            role=Role(role),
            pressing_id=_optional_int(payload.get("pressing_id")),
            plant_id=_optional_int(payload.get("plant_id")),
            token=token,
        )
    except (JWTError, ValueError) as e:
        logger.error(f"JWT validation error: {e}")
        raise credentials_exception


def require_roles(*roles: Role):
    """
    Build a dependency that only lets the given roles through.

    Example:
        current_user: CurrentUser = Depends(require_roles(Role.ADMIN, Role.SUPERVISOR))
    """
    def dependency(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in roles:
            raise ForbiddenError(f"Role {current_user.role.value} is not allowed to perform this action")
        return current_user
    return dependency


def require_admin(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """
    FastAPI dependency to require admin role.

    Raises:
        ForbiddenError: if user is not an admin
    """
    if not current_user.is_admin:
        raise ForbiddenError("Admin privileges required")
    return current_user


def assigned_pressing_id(current_user: CurrentUser) -> int:
    """Pressing a supervisor is assigned to; a supervisor without one cannot act."""
    if current_user.pressing_id is None:
        raise ForbiddenError("User is not assigned to a pressing")
    return current_user.pressing_id


def assigned_plant_id(current_user: CurrentUser) -> int:
    """Plant an operator is assigned to; an operator without one cannot act."""
    if current_user.plant_id is None:
        raise ForbiddenError("User is not assigned to a plant")
    return current_user.plant_id
