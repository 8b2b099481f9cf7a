"""JWT authentication and principal resolution helpers."""

import uuid

import bcrypt
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt

from routeguard.core.access import Principal, RoleClass
from routeguard.core.config import settings
from routeguard.core.exceptions import AuthenticationError

# JWT bearer scheme
security_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    pwd_bytes = password.encode("utf-8")
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(pwd_bytes, salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.JWT_EXPIRY_MINUTES)
    )
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def create_refresh_token(data: dict) -> str:
    """Create a JWT refresh token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(days=settings.REFRESH_TOKEN_EXPIRY_DAYS)
    to_encode.update({"exp": expire, "type": "refresh", "jti": uuid.uuid4().hex})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str, expected_type: str = "access") -> dict:
    """Decode and validate a JWT token.

    Raises:
        AuthenticationError: if the token is invalid, expired, or of the wrong type.
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise AuthenticationError("Invalid or expired token")
    if payload.get("type") != expected_type:
        raise AuthenticationError("Invalid token type")
    return payload


def principal_claims(principal: Principal) -> dict:
    """Token claims for a principal; the role class is fixed here, at login."""
    return {
        "sub": str(principal.employee_id),
        "username": principal.username,
        "role_id": principal.role_id,
        "role": principal.role_name,
        "role_class": principal.role_class.value,
        "landing_page": principal.landing_page,
    }


def principal_from_claims(payload: dict) -> Principal:
    try:
        return Principal(
            employee_id=int(payload["sub"]),
            username=payload.get("username", ""),
            role_id=payload.get("role_id"),
            role_name=payload.get("role"),
            role_class=RoleClass(payload.get("role_class", RoleClass.STANDARD.value)),
            landing_page=payload.get("landing_page"),
        )
    except (KeyError, ValueError, TypeError):
        raise AuthenticationError("Invalid token payload")


async def get_current_principal(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
) -> Principal:
    """Resolve the caller from the Bearer header, falling back to the auth cookie."""
    token = credentials.credentials if credentials else request.cookies.get(settings.AUTH_COOKIE_NAME)
    if not token:
        raise AuthenticationError("Access token required")
    principal = principal_from_claims(decode_token(token))
    request.state.principal = principal
    return principal
