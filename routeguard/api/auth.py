"""Auth API router — login, refresh, logout, me."""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from routeguard.core.access import Principal
from routeguard.core.config import settings
from routeguard.core.security import get_current_principal
from routeguard.db.session import get_db
from routeguard.schemas.schemas import (
    LoginRequest, RefreshRequest, TokenResponse, GrantSnapshotOut, DataResponse, MessageResponse,
)
from routeguard.services.auth_service import auth_service

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, response: Response, db: Session = Depends(get_db)):
    """Authenticate and return JWT tokens with the caller's grant snapshot."""
    result = auth_service.authenticate(db, body.username, body.password)
    response.set_cookie(
        settings.AUTH_COOKIE_NAME,
        result["access_token"],
        httponly=True,
        secure=not settings.DEBUG,
        samesite="strict",
        max_age=settings.JWT_EXPIRY_MINUTES * 60,
        path="/",
    )
    return result


@router.post("/refresh", response_model=TokenResponse)
async def refresh(body: RefreshRequest, db: Session = Depends(get_db)):
    """Refresh the access token and re-materialize grants."""
    return auth_service.refresh_access_token(db, body.refresh_token)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    response: Response,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Revoke all refresh tokens and clear the auth cookie."""
    auth_service.logout(db, principal.employee_id)
    response.delete_cookie(settings.AUTH_COOKIE_NAME, path="/")
    return MessageResponse(message="Logout successful")


@router.get("/me", response_model=DataResponse)
async def get_me(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Current employee with a fresh grant snapshot."""
    employee = auth_service.get_employee(db, principal.employee_id)
    return DataResponse(data=GrantSnapshotOut(**auth_service.snapshot(db, employee)))
