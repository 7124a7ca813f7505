"""
Endpoints for the external scheduler.
Only callers sending the cron header are accepted, except in development.
"""

import logging
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from typing import Optional

from ..dependencies import get_bulk_sync_job, get_refresh_queue
from ..schemas import CleanupResponse, CronSyncResponse, SyncResponse
from ...core.config import get_config
from ...orders.queue import RefreshQueue
from ...orders.sync import BulkSyncJob

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["cron"])

DEFAULT_CRON_HEADER = "x-cron-id"


def require_cron(request: Request) -> Optional[str]:
    """Return the cron id of the caller, rejecting anyone else outside development."""
    config = get_config()
    header = config.get('cron', 'header', default=DEFAULT_CRON_HEADER)
    cron_id = request.headers.get(header)

    if not cron_id and not config.is_development:
        logger.warning("Unauthorized cron call")
        raise HTTPException(status_code=401, detail="Unauthorized")
    return cron_id


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/sync", response_model=CronSyncResponse)
def cron_sync(
    cron_id: Optional[str] = Depends(require_cron),
    job: BulkSyncJob = Depends(get_bulk_sync_job)
):
    """
    Scheduled bulk sync.
    """
    logger.info(f"Cron sync started (cron_id={cron_id})")
    try:
        result = job.sync_recent_orders()
    except Exception as e:
        logger.error(f"Cron sync failed: {e}")
        return JSONResponse(
            status_code=500,
            content={
                'success': False,
                'error': 'Sync failed',
                'details': str(e),
                'timestamp': _timestamp(),
            }
        )

    return CronSyncResponse(
        success=True,
        cron_id=cron_id,
        timestamp=_timestamp(),
        sync_result=SyncResponse(**result.to_dict())
    )


@router.get("/cleanup-queue", response_model=CleanupResponse)
def cron_cleanup_queue(
    cron_id: Optional[str] = Depends(require_cron),
    queue: RefreshQueue = Depends(get_refresh_queue)
):
    """
    Delete refresh queue items older than the purge age, whatever their status.
    """
    max_age_ms = get_config().get_minutes_ms('queue', 'purge_age_minutes', default=60)
    try:
        deleted = queue.purge_older_than(max_age_ms)
    except Exception as e:
        logger.error(f"Queue cleanup error: {e}")
        return JSONResponse(status_code=500, content={'success': False, 'error': str(e)})

    return CleanupResponse(
        success=True,
        deleted=deleted,
        timestamp=_timestamp(),
        cron_id=cron_id
    )
