"""
cron.py
-------
Purpose:
    Bearer-token guards for scheduler-triggered and service endpoints.

Notes:
    - The token is compared against settings.CRON_SECRET in constant time.
    - `cron_auth_if_configured` leaves the endpoint open while no secret is
      configured (local development); `require_cron_auth` always rejects
      when the secret is missing or does not match.
"""

import hmac

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from franchise_ops.config import settings
from franchise_ops.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

_security = HTTPBearer(auto_error=False)


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
        headers={"WWW-Authenticate": "Bearer"},
    )


def token_matches(token: str | None) -> bool:
    secret = settings.CRON_SECRET
    if not token or not secret:
        return False
    return hmac.compare_digest(token.encode(), secret.encode())


def require_cron_auth(
    credentials: HTTPAuthorizationCredentials | None = Depends(_security),
) -> None:
    token = credentials.credentials if credentials else None
    if not token_matches(token):
        logger.warning("Rejected request with invalid cron token", has_token=bool(token))
        raise _unauthorized()


def cron_auth_if_configured(
    credentials: HTTPAuthorizationCredentials | None = Depends(_security),
) -> None:
    if not settings.cron_secret_configured():
        return
    require_cron_auth(credentials)
