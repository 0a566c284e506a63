"""
Command-line interface for the collection pipeline.
"""

import argparse
import asyncio
import sys
from typing import Any, List, Optional

from rq import Queue, Worker
from redis import Redis
from loguru import logger

from .config import Settings
from .errors import PipelineError
from .integrity.checker import CHECKED_PLATFORMS
from .models.schemas import Platform, RunSummary
from .pipeline import PipelineOrchestrator
from .tasks.worker import JOBS

QUEUE_NAME = 'shinypull'
PLATFORM_CHOICES = [platform.value for platform in Platform]


def setup_logging(log_level: str = "INFO"):
    """Setup logging configuration."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=log_level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
    )


def log_summary(summary: RunSummary) -> None:
    platform = summary.platform.value if summary.platform else 'requests'
    logger.info(f"{platform}: {summary.succeeded} succeeded, {summary.failed} failed of {summary.attempted} attempted")
    for identifier, error in summary.errors.items():
        logger.warning(f"  {identifier}: {error}")
    if summary.stopped_early:
        logger.warning("Stopped early on a rate-limit signal; the next run picks up the rest")


def enqueue_job(job: str, job_args: List[Any], redis_url: str) -> str:
    """
    Enqueue one maintenance job.

    Args:
        job: Job name (see ``JOBS``)
        job_args: Positional arguments for the job
        redis_url: Redis connection URL

    Returns:
        Job ID
    """
    redis_conn = Redis.from_url(redis_url)
    queue = Queue(QUEUE_NAME, connection=redis_conn)
    enqueued = queue.enqueue(JOBS[job], *job_args, job_timeout=1800)
    logger.info(f"Enqueued {job} job {enqueued.id}")
    return enqueued.id


def start_worker(redis_url: str, burst: bool = False) -> None:
    """Run an RQ worker on the pipeline queue."""
    redis_conn = Redis.from_url(redis_url)
    worker = Worker([Queue(QUEUE_NAME, connection=redis_conn)], connection=redis_conn)
    logger.info(f"Starting RQ worker on {redis_url}")
    worker.work(burst=burst)


async def _dispatch(args: argparse.Namespace, orchestrator: PipelineOrchestrator) -> int:
    if args.command == 'discover':
        summary = await orchestrator.discover(
            args.platform, args.count, args.candidates, args.query, args.queue,
        )
        log_summary(summary)
        return 0

    if args.command == 'refresh':
        log_summary(await orchestrator.refresh(args.platform, args.count))
        return 0

    if args.command == 'process-requests':
        log_summary(await orchestrator.process_requests(args.count))
        return 0

    if args.command == 'request':
        outcome = await orchestrator.submit_request(args.platform, args.username, instant=args.instant)
        logger.info(f"{outcome.outcome}: {outcome.message}")
        return 0

    if args.command == 'check-integrity':
        platforms = [Platform(p) for p in args.platforms] if args.platforms else list(CHECKED_PLATFORMS)
        tally = await orchestrator.check_integrity(platforms)
        return tally.exit_code

    if args.command == 'check-db':
        if orchestrator.check_db():
            logger.info("Database connection successful")
            return 0
        logger.error("Database connection failed")
        return 1

    raise ValueError(f"Unknown command: {args.command}")


async def run_command(args: argparse.Namespace) -> int:
    orchestrator = PipelineOrchestrator()
    try:
        return await _dispatch(args, orchestrator)
    finally:
        await orchestrator.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='shinypull',
        description="Creator statistics collection and integrity pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Discover up to 50 TikTok creators from usernames tracked on other platforms
  shinypull discover tiktok 50

  # Discover YouTube creators from a file of handles
  shinypull discover youtube 20 --candidates handles.txt

  # Refresh the 100 least recently updated Twitch creators
  shinypull refresh twitch 100

  # Drain pending creator requests and run the integrity suite
  shinypull process-requests
  shinypull check-integrity

  # Run a refresh through the RQ queue
  shinypull enqueue refresh kick 200
        """
    )
    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default=None,
        help='Logging level (default: LOG_LEVEL or INFO)'
    )
    sub = parser.add_subparsers(dest='command', required=True)

    discover = sub.add_parser('discover', help='Add creators not yet tracked on a platform')
    discover.add_argument('platform', choices=PLATFORM_CHOICES)
    discover.add_argument('count', type=int, nargs='?', default=25)
    discover.add_argument('--candidates', help='File with one username per line')
    discover.add_argument('--query', help='Search query used when no candidate file is given')
    discover.add_argument('--queue', action='store_true', help='Queue creator requests instead of fetching now')

    refresh = sub.add_parser('refresh', help='Refresh stats for the least recently updated creators')
    refresh.add_argument('platform', choices=PLATFORM_CHOICES)
    refresh.add_argument('count', type=int, nargs='?', default=50)

    requests = sub.add_parser('process-requests', help='Process pending creator requests')
    requests.add_argument('count', type=int, nargs='?', default=None)

    request = sub.add_parser('request', help='Submit a creator request')
    request.add_argument('platform', choices=PLATFORM_CHOICES)
    request.add_argument('username')
    request.add_argument('--instant', action='store_true', help='Try an immediate TikTok lookup first')

    integrity = sub.add_parser('check-integrity', help='Run data integrity checks (exit 1 on any FAIL)')
    integrity.add_argument('--platforms', nargs='+', choices=PLATFORM_CHOICES)

    sub.add_parser('check-db', help='Check database connection and exit')

    enqueue = sub.add_parser('enqueue', help='Enqueue a job on the RQ queue')
    enqueue.add_argument('job', choices=sorted(JOBS))
    enqueue.add_argument('job_args', nargs='*', help='Positional job arguments')

    worker = sub.add_parser('worker', help='Start an RQ worker')
    worker.add_argument('--burst', action='store_true', help='Exit when the queue is empty')

    return parser


def coerce_job_args(values: List[str]) -> List[Any]:
    """Numeric job arguments are passed as ints."""
    return [int(value) if value.isdigit() else value for value in values]


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()
    setup_logging(args.log_level or settings.log_level)

    if args.command == 'enqueue':
        enqueue_job(args.job, coerce_job_args(args.job_args), settings.redis_url)
        return 0

    if args.command == 'worker':
        start_worker(settings.redis_url, burst=args.burst)
        return 0

    try:
        return asyncio.run(run_command(args))
    except PipelineError as e:
        logger.error(f"Fatal: {e}")
        return 1
    except ValueError as e:
        logger.error(str(e))
        return 1


if __name__ == '__main__':
    sys.exit(main())
