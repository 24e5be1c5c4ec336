"""FastAPI dependency utilities."""

from fastapi import Depends, HTTPException, Request, Response, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app.application.use_cases.notifications import (
    NotificationService,
    get_notification_service as _get_notification_service,
)
from app.config import get_settings
from app.domain.entities import User
from app.infrastructure.database import get_db
from app.infrastructure.repositories import UserRepository
from app.infrastructure.security import decode_access_token, refresh_access_token

# Tokens are issued by the platform login service, not by this API.
oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl=get_settings().auth_token_url,
    description="Access token issued by the platform login service",
)


def _credentials_error(detail: str = "Invalid credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def resolve_current_user(token: str, db: Session) -> User:
    """Resolve the authenticated user for the provided token."""

    try:
        payload = decode_access_token(token)
    except ValueError as exc:
        raise _credentials_error() from exc

    email = payload.get("sub")
    if not isinstance(email, str) or not email:
        raise _credentials_error()

    user = UserRepository(db).get_by_email(email)
    if user is None:
        raise _credentials_error("User not found")
    return user


def get_current_user(
    request: Request,
    response: Response,
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Return the authenticated user from the provided token."""

    user = resolve_current_user(token, db)

    try:
        refreshed_token = refresh_access_token(token)
    except ValueError as exc:
        raise _credentials_error() from exc

    response.headers["X-Refreshed-Token"] = refreshed_token
    request.state.refreshed_token = refreshed_token

    return user


def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    """Ensure the authenticated user is active."""

    if not current_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Inactive user",
        )
    return current_user


def require_admin(current_user: User = Depends(get_current_active_user)) -> User:
    """Ensure the authenticated user has administrator privileges."""

    if not current_user.is_admin():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized",
        )
    return current_user


def get_notification_service() -> NotificationService:
    """Return the process-wide :class:`NotificationService`."""

    return _get_notification_service()
