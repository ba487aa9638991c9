"""
Table Endpoints

    GET /api/tables/qr/{qr_slug}   public   resolve a scanned QR code
"""

from fastapi import APIRouter, Depends

from qrorder.dependencies import get_engine
from qrorder.schemas import ApiResponse, ErrorResponse, TableResponse
from qrorder.services.orders.engine import OrderLifecycleEngine

router = APIRouter(prefix="/tables", tags=["Tables"])


@router.get(
    "/qr/{qr_slug}",
    response_model=ApiResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Resolve Table QR Code",
)
async def resolve_table(
    qr_slug: str,
    engine: OrderLifecycleEngine = Depends(get_engine),
) -> ApiResponse:
    """Look up the table behind a QR code and start a new table session."""
    table = await engine.open_table_session(qr_slug)
    return ApiResponse(data=TableResponse.from_domain(table))
