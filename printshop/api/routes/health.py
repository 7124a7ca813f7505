"""
Health check endpoint.
"""

from fastapi import APIRouter, Depends

from ..dependencies import get_store
from ..schemas import HealthResponse
from ...core.database import DocumentStore, ORDERS_COLLECTION, REFRESH_QUEUE_COLLECTION
from ...orders.queue import STATUS_PENDING

router = APIRouter(tags=["health"])

VERSION = "1.0.0"


@router.get("/health", response_model=HealthResponse)
def health_check(db: DocumentStore = Depends(get_store)):
    """Check API health and database status."""
    return HealthResponse(
        status="healthy",
        version=VERSION,
        orders=db.count(ORDERS_COLLECTION),
        pending_refreshes=db.count(REFRESH_QUEUE_COLLECTION, where=[('status', '==', STATUS_PENDING)])
    )
