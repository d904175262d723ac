"""
Dashboard endpoints
"""

from fastapi import APIRouter, Depends

from .deps import get_engine, unwrap
from .schemas import dashboard_response
from ..engine import LedgerEngine


router = APIRouter()


@router.get("")
async def get_dashboard(engine: LedgerEngine = Depends(get_engine)):
    """Aggregate figures; may be served from cache"""
    result = await engine.dashboard_stats()
    stats = unwrap(result)
    response = dashboard_response(stats)
    response["warning"] = result.warning
    return response
