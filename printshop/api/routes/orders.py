"""
Order API endpoints.
"""

import logging
import time
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from typing import Optional

from ..dependencies import get_order_service, get_queue_processor
from ..schemas import OrderListResponse, OrderRecord, OrderUpdateRequest, QueueProcessResponse
from ...orders.processor import QueueProcessor
from ...orders.service import OrderService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("", response_model=OrderListResponse, response_model_exclude_none=True)
def list_orders(
    background_tasks: BackgroundTasks,
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    sku: Optional[str] = Query(None, description="Filter by SKU"),
    service: OrderService = Depends(get_order_service)
):
    """
    List cached orders.
    Stale entries are served as they are and refreshed in the background.
    """
    try:
        return service.list_orders(
            offset=offset,
            limit=limit,
            sku=sku,
            submit=background_tasks.add_task
        )
    except Exception as e:
        logger.error(f"Failed to list orders: {e}")
        return JSONResponse(
            status_code=500,
            content={'error': str(e), 'hint': 'Failed to read orders. Check the server logs.'}
        )


@router.post("/process-queue", response_model=QueueProcessResponse)
def process_queue(processor: QueueProcessor = Depends(get_queue_processor)):
    """
    Process one batch of the refresh queue.
    """
    start = time.monotonic()
    try:
        result = processor.process_batch()
        return QueueProcessResponse(success=True, **result.to_dict())
    except Exception as e:
        logger.error(f"Queue processor error: {e}")
        return JSONResponse(
            status_code=500,
            content={
                'success': False,
                'error': str(e),
                'execution_time_ms': int((time.monotonic() - start) * 1000),
            }
        )


@router.get("/{order_id}", response_model=OrderRecord, response_model_exclude_none=True)
def get_order(order_id: str, service: OrderService = Depends(get_order_service)):
    """
    Get a single cached order.
    """
    order = service.get_order(order_id)
    if not order:
        raise HTTPException(status_code=404, detail=f"Order {order_id} not found")
    return order


@router.patch("/{order_id}", response_model=OrderRecord, response_model_exclude_none=True)
def update_order(
    order_id: str,
    request: OrderUpdateRequest,
    service: OrderService = Depends(get_order_service)
):
    """
    Edit fulfillment fields of an order; null clears a field.
    The next syncs leave the order alone for the cooldown period.
    """
    # Fields sent as null are cleared
    changes = request.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=422, detail="No fields to update")
    try:
        return service.update_order(order_id, changes)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Order {order_id} not found")
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
