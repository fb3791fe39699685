from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer

from shared.errors import AuthorizationError
from .jwt_handler import verify_access_token

# Defines the expected header format (Bearer <token>)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login", auto_error=False)

ROLE_CUSTOMER = "customer"
ROLE_ADMIN = "admin"
ROLE_SUPER_ADMIN = "super_admin"


@dataclass(frozen=True)
class CurrentUser:
    id: int
    role: str = ROLE_CUSTOMER

    @property
    def is_admin(self) -> bool:
        return self.role in (ROLE_ADMIN, ROLE_SUPER_ADMIN)

    @property
    def is_super_admin(self) -> bool:
        return self.role == ROLE_SUPER_ADMIN


def _user_from_token(token: str) -> Optional[CurrentUser]:
    payload = verify_access_token(token)
    if payload is None:
        return None

    sub = payload.get("sub")
    if sub is None:
        return None
    try:
        user_id = int(sub)
    except (TypeError, ValueError):
        return None
    return CurrentUser(id=user_id, role=payload.get("role", ROLE_CUSTOMER))


async def get_current_user(request: Request, token: str = Depends(oauth2_scheme)) -> CurrentUser:
    """Dependency to validate JWT and return the calling user."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not token:
        raise credentials_exception

    user = _user_from_token(token)
    if user is None:
        raise credentials_exception

    # Store in request state for downstream use (like rate limiting)
    request.state.user_id = user.id
    return user


async def get_optional_user(request: Request, token: str = Depends(oauth2_scheme)) -> Optional[CurrentUser]:
    """Like get_current_user, but lets guests through.

    A token that is present but invalid is still rejected: a customer with an
    expired session should log in again rather than silently check out as a
    guest.
    """
    if not token:
        return None
    return await get_current_user(request, token)


async def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise AuthorizationError("Administrator access required")
    return user
