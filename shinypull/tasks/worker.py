"""
RQ worker tasks wrapping each maintenance run.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from rq import get_current_job
from loguru import logger

from ..errors import PipelineError
from ..pipeline import PipelineOrchestrator

T = TypeVar('T')


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _job_id() -> str:
    job = get_current_job()
    return job.id if job else "unknown"


def _run(action: Callable[[PipelineOrchestrator], Awaitable[T]]) -> T:
    async def runner() -> T:
        orchestrator = PipelineOrchestrator()
        try:
            return await action(orchestrator)
        finally:
            await orchestrator.close()

    return asyncio.run(runner())


def _failure(task: str, job_id: str, error: Exception) -> Dict[str, Any]:
    logger.error(f"Error in {task} task {job_id}: {error}")
    return {'success': False, 'error': str(error), 'timestamp': _timestamp()}


def discover_creators(
    platform: str,
    count: int = 25,
    candidates_file: Optional[str] = None,
    query: Optional[str] = None,
    queue_only: bool = False,
) -> Dict[str, Any]:
    """
    RQ task to discover new creators on one platform.

    Returns:
        Dictionary with the run summary
    """
    job_id = _job_id()
    logger.info(f"Starting discovery task {job_id} for {platform} (count={count})")
    try:
        summary = _run(lambda o: o.discover(platform, count, candidates_file, query, queue_only))
    except PipelineError as e:
        return _failure('discovery', job_id, e)

    logger.info(f"Completed discovery task {job_id}: {summary.succeeded} added, {summary.failed} failed")
    return {'success': True, 'summary': summary.model_dump(mode='json'), 'timestamp': _timestamp()}


def refresh_creators(platform: str, count: int = 50) -> Dict[str, Any]:
    """RQ task to refresh the least recently updated creators on one platform."""
    job_id = _job_id()
    logger.info(f"Starting refresh task {job_id} for {platform} (count={count})")
    try:
        summary = _run(lambda o: o.refresh(platform, count))
    except PipelineError as e:
        return _failure('refresh', job_id, e)

    logger.info(f"Completed refresh task {job_id}: {summary.succeeded} updated, {summary.failed} failed")
    return {'success': True, 'summary': summary.model_dump(mode='json'), 'timestamp': _timestamp()}


def process_requests(count: Optional[int] = None) -> Dict[str, Any]:
    """RQ task to drain pending creator requests."""
    job_id = _job_id()
    logger.info(f"Starting request processing task {job_id}")
    try:
        summary = _run(lambda o: o.process_requests(count))
    except PipelineError as e:
        return _failure('request processing', job_id, e)

    return {'success': True, 'summary': summary.model_dump(mode='json'), 'timestamp': _timestamp()}


def check_integrity() -> Dict[str, Any]:
    """RQ task running the data integrity checks; ``success`` is False on any FAIL."""
    job_id = _job_id()
    logger.info(f"Starting integrity task {job_id}")
    try:
        tally = _run(lambda o: o.check_integrity())
    except PipelineError as e:
        return _failure('integrity', job_id, e)

    return {
        'success': tally.exit_code == 0,
        'passed': tally.passed,
        'warned': tally.warned,
        'failed': tally.failed,
        'timestamp': _timestamp(),
    }


def health_check() -> Dict[str, Any]:
    """
    Health check task for worker.

    Returns:
        Dictionary with health status
    """
    try:
        orchestrator = PipelineOrchestrator()
        db_healthy = orchestrator.repository.health_check()
        asyncio.run(orchestrator.close())
    except PipelineError as e:
        return _failure('health check', _job_id(), e)

    return {'success': True, 'database_healthy': db_healthy, 'timestamp': _timestamp()}


JOBS: Dict[str, Callable[..., Dict[str, Any]]] = {
    'discover': discover_creators,
    'refresh': refresh_creators,
    'process-requests': process_requests,
    'check-integrity': check_integrity,
    'health-check': health_check,
}
