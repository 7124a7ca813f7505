"""
Service providers for API routes.
Routes receive these through Depends so tests can swap them.
"""

from ..core.database import DocumentStore, get_database
from ..orders.processor import QueueProcessor, create_queue_processor_from_config
from ..orders.queue import RefreshQueue, create_refresh_queue_from_config
from ..orders.service import OrderService, create_order_service_from_config
from ..orders.sync import BulkSyncJob, create_bulk_sync_job_from_config


def get_store() -> DocumentStore:
    return get_database()


def get_order_service() -> OrderService:
    return create_order_service_from_config()


def get_queue_processor() -> QueueProcessor:
    return create_queue_processor_from_config()


def get_refresh_queue() -> RefreshQueue:
    return create_refresh_queue_from_config()


def get_bulk_sync_job() -> BulkSyncJob:
    return create_bulk_sync_job_from_config()
