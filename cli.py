"""
CLI for Printshop Orders.
Run syncs, queue maintenance, the scheduler, or start the server from command line.
"""

import sys
import argparse


def _setup():
    from printshop.core.config import get_config
    from printshop.core.logging import setup_logging_from_config

    config = get_config()
    setup_logging_from_config(config)
    return config


def cmd_sync(args):
    """Run a bulk sync of recent marketplace orders."""
    from printshop.auth.token import NotAuthenticatedError
    from printshop.orders.client import MarketplaceError
    from printshop.orders.sync import create_bulk_sync_job_from_config

    _setup()
    print("[SYNC] Syncing recent marketplace orders...")

    try:
        result = create_bulk_sync_job_from_config().sync_recent_orders()
    except NotAuthenticatedError as e:
        print(f"[ERROR] {e}")
        return 1
    except MarketplaceError as e:
        print(f"[ERROR] Marketplace unavailable: {e}")
        return 1

    print(f"\n[OK] Sync complete!")
    print(f"   Orders found: {result.total_found}")
    print(f"   New: {result.synced}")
    print(f"   Updated: {result.updated}")
    print(f"   Skipped (manual edits): {result.skipped}")
    if result.failed:
        print(f"   Failed: {result.failed}")
    return 0


def cmd_process_queue(args):
    """Process refresh queue batches."""
    from printshop.auth.token import NotAuthenticatedError
    from printshop.orders.processor import create_queue_processor_from_config

    _setup()
    processor = create_queue_processor_from_config()

    for run in range(args.batches):
        try:
            result = processor.process_batch()
        except NotAuthenticatedError as e:
            print(f"[ERROR] {e}")
            return 1
        print(
            f"[QUEUE] Batch {run + 1}: processed={result.processed} failed={result.failed} "
            f"remaining={result.remaining} cleaned_up={result.cleaned_up} "
            f"({result.execution_time_ms} ms)"
        )
        if not result.remaining:
            break
    return 0


def cmd_cleanup_queue(args):
    """Delete old refresh queue items."""
    from printshop.orders.queue import create_refresh_queue_from_config

    config = _setup()
    minutes = args.max_age or config.get_int('queue', 'purge_age_minutes', default=60)

    deleted = create_refresh_queue_from_config().purge_older_than(minutes * 60 * 1000)
    print(f"[OK] Deleted {deleted} queue items older than {minutes} minutes")
    return 0


def cmd_serve(args):
    """Start the API server."""
    import uvicorn

    print(f"[SERVER] Starting API server on http://{args.host}:{args.port}")
    print(f"   Docs: http://{args.host}:{args.port}/docs")

    uvicorn.run(
        "printshop.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload
    )


def cmd_schedule(args):
    """Run the periodic sync / queue / cleanup loop."""
    from printshop.jobs.scheduler import RefreshScheduler

    _setup()
    scheduler = RefreshScheduler()
    try:
        scheduler.run()
    except KeyboardInterrupt:
        scheduler.stop()
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Printshop Orders CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python cli.py sync
  python cli.py process-queue --batches 3
  python cli.py cleanup-queue --max-age 30
  python cli.py serve
  python cli.py schedule
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    sync_parser = subparsers.add_parser("sync", help="Sync recent marketplace orders")
    sync_parser.set_defaults(func=cmd_sync)

    queue_parser = subparsers.add_parser("process-queue", help="Process the refresh queue")
    queue_parser.add_argument("--batches", type=int, default=1, help="Max batches to run")
    queue_parser.set_defaults(func=cmd_process_queue)

    cleanup_parser = subparsers.add_parser("cleanup-queue", help="Delete old refresh queue items")
    cleanup_parser.add_argument("--max-age", type=int, default=None, help="Age in minutes (default from config)")
    cleanup_parser.set_defaults(func=cmd_cleanup_queue)

    serve_parser = subparsers.add_parser("serve", help="Start API server")
    serve_parser.add_argument("--host", type=str, default="0.0.0.0", help="Host to bind")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on")
    serve_parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    serve_parser.set_defaults(func=cmd_serve)

    schedule_parser = subparsers.add_parser("schedule", help="Run periodic sync and queue maintenance")
    schedule_parser.set_defaults(func=cmd_schedule)

    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return 1
    return args.func(args) or 0


if __name__ == "__main__":
    sys.exit(main())
