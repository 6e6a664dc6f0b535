import logging
from typing import Iterable, Optional

from fastapi import Depends, HTTPException, Request
from jose import JWTError
from pydantic import ValidationError as PydanticValidationError

from .auth import decode_access_token
from medbook.config.constants import Role
from medbook.db.session import get_db_session
from medbook.schemas.shared import Caller

logger = logging.getLogger(__name__)


def _caller_from_token(token: str) -> Optional[Caller]:
    try:
        token_data = decode_access_token(token)
    except JWTError as e:
        logger.debug(f"Ignoring invalid token: {e}")
        return None
    # refresh tokens carry no role and never authenticate a request
    if token_data.get("role") is None:
        return None
    try:
        return Caller(id=token_data.get("sub"), role=token_data.get("role"))
    except PydanticValidationError:
        logger.warning(f"Token with malformed claims: sub={token_data.get('sub')}")
        return None


async def verify_token_middleware(request: Request, call_next):
    """
    Middleware to read the bearer token (or session cookie) and attach the
    caller identity to request state. It never blocks a request; protected
    routes use `get_current_user`.
    """
    request.state.user = None

    token = None
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        token = auth_header.split(" ", 1)[1]
    elif request.cookies.get("session"):
        token = request.cookies.get("session")

    if token:
        request.state.user = _caller_from_token(token)

    return await call_next(request)


# FastAPI dependency for protected routes
def get_current_user(request: Request) -> Caller:
    """
    Dependency to use in FastAPI route functions that require authentication.
    This will raise an HTTPException if the user is not authenticated.
    """
    user = getattr(request.state, "user", None)
    if not user:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def require_roles(roles: Iterable[Role]):
    """
    Factory function to create a dependency that requires specific roles.
    Usage: Depends(require_roles([Role.doctor]))
    """
    allowed = set(roles)

    def _require_roles(user: Caller = Depends(get_current_user)) -> Caller:
        if user.role not in allowed:
            raise HTTPException(status_code=403, detail="Not enough permissions")
        return user

    return _require_roles


# Get a database session dependency
async def get_db(request: Request):
    """Yield an async SQLAlchemy session (dependency)."""
    async for session in get_db_session(request):
        yield session
