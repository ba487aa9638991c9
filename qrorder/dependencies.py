"""
FastAPI Dependencies

Everything a route needs is built once by ``create_app`` and kept on
``app.state``; these helpers hand it to routes and turn the bearer token
into an Identity.

Auth levels:
    - optional_identity: missing or invalid token means anonymous
    - require_identity:  a valid access token is mandatory (401 otherwise)
    - require_staff:     valid token with role staff or admin (403 otherwise)
"""

import logging
from typing import Optional

from fastapi import Depends, Header, Request

from qrorder.core.config import Settings
from qrorder.core.errors import AuthenticationRequired, PermissionDenied, QROrderError
from qrorder.core.security import TokenService
from qrorder.domain import Identity
from qrorder.services.orders.engine import OrderLifecycleEngine

logger = logging.getLogger(__name__)


def get_engine(request: Request) -> OrderLifecycleEngine:
    return request.app.state.engine


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_token_service(request: Request) -> TokenService:
    return request.app.state.tokens


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def optional_identity(
    authorization: Optional[str] = Header(None),
    tokens: TokenService = Depends(get_token_service),
) -> Optional[Identity]:
    token = _bearer_token(authorization)
    if token is None:
        return None
    try:
        return tokens.verify_access_token(token)
    except QROrderError as e:
        logger.debug(f"Ignoring unusable token on optional-auth route: {e.message}")
        return None


async def require_identity(
    authorization: Optional[str] = Header(None),
    tokens: TokenService = Depends(get_token_service),
) -> Identity:
    token = _bearer_token(authorization)
    if token is None:
        raise AuthenticationRequired()
    return tokens.verify_access_token(token)


async def require_staff(identity: Identity = Depends(require_identity)) -> Identity:
    if not identity.is_staff:
        raise PermissionDenied("Staff or admin role required")
    return identity
