"""
Auth Endpoints

    POST /api/auth/refresh     exchange a refresh token for a new pair
    POST /api/auth/dev-token   development only: token pair for any user

Accounts and login are handled elsewhere; this service only issues and
verifies the signed token pair.
"""

import logging

from fastapi import APIRouter, Depends

from qrorder.core.config import Settings
from qrorder.core.errors import NotFoundError
from qrorder.core.security import TokenService
from qrorder.dependencies import get_settings_dep, get_token_service
from qrorder.schemas import ApiResponse, DevTokenRequest, ErrorResponse, RefreshTokenRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post(
    "/refresh",
    response_model=ApiResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Refresh Tokens",
)
async def refresh_tokens(
    body: RefreshTokenRequest,
    tokens: TokenService = Depends(get_token_service),
) -> ApiResponse:
    pair = tokens.refresh(body.refresh_token)
    return ApiResponse(message="Tokens refreshed", data=pair.to_dict())


@router.post("/dev-token", response_model=ApiResponse, summary="Issue Development Token")
async def dev_token(
    body: DevTokenRequest,
    settings: Settings = Depends(get_settings_dep),
    tokens: TokenService = Depends(get_token_service),
) -> ApiResponse:
    if not settings.is_development:
        raise NotFoundError("Not Found")

    logger.warning(f"Issuing development token for {body.user_id} ({body.role.value})")
    pair = tokens.issue_token_pair(body.user_id, body.role)
    return ApiResponse(message="Development token issued", data=pair.to_dict())
