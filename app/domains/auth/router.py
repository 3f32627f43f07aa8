import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.dependencies import get_settings
from app.core.exceptions import UnauthenticatedError
from app.domains.auth import schemas
from app.domains.auth.service import AuthService
from app.shared.database.connection import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])
security = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> schemas.AuthUser:
    """
    Resolve the bearer token to the calling user.

    Fails with 401 before the handler runs when the token is missing,
    malformed, expired or names a user that no longer exists.
    """
    if credentials is None:
        raise UnauthenticatedError("Not authenticated")
    user = AuthService(db, settings).get_current_user(credentials.credentials)
    return schemas.AuthUser.model_validate(user)


def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> Optional[schemas.AuthUser]:
    """Like get_current_user, but an absent or unusable token yields None."""
    if credentials is None:
        return None
    try:
        user = AuthService(db, settings).get_current_user(credentials.credentials)
    except UnauthenticatedError as e:
        logger.info(f"Ignoring optional bearer token: {e.message}")
        return None
    return schemas.AuthUser.model_validate(user)


@router.post(
    "/register",
    response_model=schemas.RegisterResponse,
    status_code=status.HTTP_201_CREATED,
)
def register(
    payload: schemas.RegisterRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Register a new buyer or seller account

    **Possible errors:**
    - 400: Validation failed, or email already registered
    """
    user = AuthService(db, settings).register(payload)
    return schemas.RegisterResponse(
        message="User registered successfully",
        user=schemas.PublicUser.model_validate(user),
    )


@router.post("/login", response_model=schemas.LoginResponse)
def login(
    payload: schemas.LoginRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Exchange email and password for a bearer token

    **Possible errors:**
    - 400: Validation failed
    - 401: Invalid email or password
    """
    return AuthService(db, settings).authenticate(payload)


@router.get("/me", response_model=schemas.PublicUser)
def read_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Get current authenticated user info

    **Possible errors:**
    - 401: Invalid or expired token, missing Authorization header
    """
    if credentials is None:
        raise UnauthenticatedError("Not authenticated")
    user = AuthService(db, settings).get_current_user(credentials.credentials)
    return schemas.PublicUser.model_validate(user)
