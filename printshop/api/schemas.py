"""
Pydantic schemas for API request/response validation.
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Literal


# ==================== Order Schemas ====================

OrderStatus = Literal['to-do', 'printing', 'ready', 'shipped', 'cancelled', 'returned']


class CachedOrderData(BaseModel):
    """Marketplace fields cached for display."""
    title: str
    seller_sku: str
    quantity: int
    price: float
    color: str = ""
    status: str
    shipping_status: str
    buyer_nickname: str
    date_created: str
    date_shipped: Optional[str] = None


class OrderRecord(BaseModel):
    """Persisted order: cache plus in-house fulfillment data."""
    id: str
    sku: str
    ml_cached_data: Optional[CachedOrderData] = None
    ml_cached_at: Optional[int] = None

    internalStatus: Optional[OrderStatus] = None
    internalNotes: Optional[str] = None
    priority: Optional[int] = None
    assignedPrinter: Optional[str] = None

    printStartedAt: Optional[int] = None
    printCompletedAt: Optional[int] = None
    filamentUsedGrams: Optional[float] = None
    printCost: Optional[float] = None

    syncedAt: Optional[int] = None
    createdAt: Optional[int] = None
    updatedAt: Optional[int] = None
    manuallyUpdated: Optional[bool] = None


class OrderView(OrderRecord):
    """Order as listed, with cache state indicators."""
    ml_data: CachedOrderData
    is_using_cache: bool = False
    cache_age_minutes: Optional[int] = None
    cache_warning: Optional[str] = None


class Paging(BaseModel):
    total: int
    limit: int
    offset: int
    has_next: bool
    has_prev: bool


class OrderListResponse(BaseModel):
    """Response for order list."""
    orders: List[OrderView]
    paging: Paging
    cache_warning: Optional[str] = None
    refreshing_count: int = 0
    synced_at: Optional[int] = None
    last_updated: Optional[int] = None


class OrderUpdateRequest(BaseModel):
    """Manual edit of fulfillment fields."""
    internalStatus: Optional[OrderStatus] = None
    internalNotes: Optional[str] = None
    priority: Optional[int] = Field(default=None, ge=1, le=5)
    assignedPrinter: Optional[str] = None
    printStartedAt: Optional[int] = Field(default=None, ge=0)
    printCompletedAt: Optional[int] = Field(default=None, ge=0)
    filamentUsedGrams: Optional[float] = Field(default=None, ge=0)
    printCost: Optional[float] = Field(default=None, ge=0)


# ==================== Task Schemas ====================

class SyncResponse(BaseModel):
    """Bulk sync result."""
    success: bool
    total_found: int
    total_synced: int
    total_updated: int
    total_skipped: int
    message: Optional[str] = None


class QueueProcessResponse(BaseModel):
    """Queue worker result."""
    success: bool
    processed: int
    failed: int
    remaining: int
    cleaned_up: int
    execution_time_ms: int


class CleanupResponse(BaseModel):
    """Queue cleanup result."""
    success: bool
    deleted: int
    timestamp: str
    cron_id: Optional[str] = None


class CronSyncResponse(BaseModel):
    """Scheduled sync result."""
    success: bool
    cron_id: Optional[str] = None
    timestamp: str
    sync_result: SyncResponse


# ==================== Generic Schemas ====================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    orders: int
    pending_refreshes: int


class ErrorResponse(BaseModel):
    """Error body of failed operations."""
    success: bool = False
    error: str
    hint: Optional[str] = None
