"""
Marketplace sync endpoint.
"""

import logging
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..dependencies import get_bulk_sync_job
from ..schemas import SyncResponse
from ...auth.token import CREDENTIALS_HINT
from ...orders.sync import BulkSyncJob

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sync", tags=["sync"])


def run_sync(job: BulkSyncJob):
    """Run the bulk sync, turning failures into an error response."""
    try:
        return SyncResponse(**job.sync_recent_orders().to_dict())
    except Exception as e:
        logger.error(f"Sync failed: {e}")
        return JSONResponse(
            status_code=500,
            content={'success': False, 'error': str(e), 'hint': CREDENTIALS_HINT}
        )


@router.api_route("", methods=["GET", "POST"], response_model=SyncResponse)
def trigger_sync(job: BulkSyncJob = Depends(get_bulk_sync_job)):
    """
    Sync recent marketplace orders into the cache.
    """
    return run_sync(job)
