import logging
from typing import Optional

from fastapi import Header, HTTPException, Request, status

from kyc_case_service.app.config import settings
from kyc_case_service.app.dependencies.http_client import get_http_client
from kyc_case_service.app.models import User
from kyc_case_service.app.models.enums import UserRole
from kyc_case_service.app.service.exceptions import IdentityServiceError
from kyc_case_service.infrastructure.identity_client import IdentityServiceClient

logger = logging.getLogger(__name__)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    request: Request,
    authorization: Optional[str] = Header(default=None),
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
    x_user_name: Optional[str] = Header(default=None),
) -> User:
    """
    Resolves the caller. With IDENTITY_SERVICE_URL configured the bearer token
    is checked against the identity provider; otherwise the caller is read
    from the X-User-Id / X-User-Role / X-User-Name headers set by the gateway.
    """
    if settings.IDENTITY_SERVICE_URL:
        if not authorization or not authorization.lower().startswith("bearer "):
            raise _unauthorized("Missing bearer token.")
        client = IdentityServiceClient(await get_http_client(request), settings.IDENTITY_SERVICE_URL)
        try:
            return await client.get_current_user(authorization[7:].strip())
        except IdentityServiceError as e:
            raise _unauthorized(str(e))

    if not x_user_id or not x_user_role:
        raise _unauthorized("Missing caller identity.")
    try:
        role = UserRole(x_user_role)
    except ValueError:
        logger.warning(f"Rejected unknown role '{x_user_role}' for caller {x_user_id}.")
        raise _unauthorized(f"Unknown role '{x_user_role}'.")
    return User(id=x_user_id, name=x_user_name or x_user_id, role=role)
