"""Delayed job queue adapter backed by Celery."""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .celery_app import celery_app
from .config import settings

logger = logging.getLogger(__name__)


@dataclass
class QueuedJob:
    job_id: str
    name: str
    payload: Dict[str, Any] = field(default_factory=dict)
    state: str = "delayed"  # delayed | waiting


def _payload_from_request(request: Dict[str, Any]) -> Dict[str, Any]:
    args = request.get("args") or []
    if args and isinstance(args[0], dict):
        return args[0]
    kwargs = request.get("kwargs") or {}
    return kwargs.get("payload") or {}


class CeleryJobQueue:
    """Submits, cancels and inspects delayed Celery jobs.

    Jobs go to the delivery queue with a countdown. Cancellation is a revoke,
    which workers honour for jobs they already hold (scheduled or reserved)
    and for jobs that reach them later.
    """

    def __init__(self, app=None, queue: Optional[str] = None, routing_key: Optional[str] = None):
        self.app = app or celery_app
        self.queue = queue or settings.DELIVERY_QUEUE
        self.routing_key = routing_key or settings.DELIVERY_ROUTING_KEY

    def submit(self, job_type: str, payload: Dict[str, Any], delay_seconds: float, job_id: str) -> str:
        result = self.app.send_task(
            job_type,
            args=[payload],
            countdown=max(0.0, float(delay_seconds)),
            task_id=job_id,
            queue=self.queue,
            routing_key=self.routing_key,
        )
        logger.debug(f"[Queue] Submitted {job_type} id={result.id} delay={delay_seconds:.0f}s")
        return result.id

    def cancel(self, job_id: str) -> None:
        self.app.control.revoke(job_id)
        logger.debug(f"[Queue] Revoked {job_id}")

    def _inspect(self):
        return self.app.control.inspect(timeout=settings.INSPECT_TIMEOUT_SECONDS)

    def list_pending(self, **payload_filters: Any) -> List[QueuedJob]:
        """Jobs held by workers and not yet running, filtered on payload fields."""
        inspector = self._inspect()
        jobs: List[QueuedJob] = []
        for entries in (inspector.scheduled() or {}).values():
            for entry in entries:
                request = entry.get("request") or {}
                jobs.append(QueuedJob(request.get("id"), request.get("name"), _payload_from_request(request), "delayed"))
        for entries in (inspector.reserved() or {}).values():
            for request in entries:
                jobs.append(QueuedJob(request.get("id"), request.get("name"), _payload_from_request(request), "waiting"))

        def _matches(job: QueuedJob) -> bool:
            return all(job.payload.get(k) == v for k, v in payload_filters.items())

        return [job for job in jobs if job.job_id and _matches(job)]

    def counts(self) -> Dict[str, int]:
        inspector = self._inspect()
        delayed = sum(len(v) for v in (inspector.scheduled() or {}).values())
        reserved = sum(len(v) for v in (inspector.reserved() or {}).values())
        active = sum(len(v) for v in (inspector.active() or {}).values())
        with self.app.connection_or_acquire() as conn:
            declared = conn.default_channel.queue_declare(queue=self.queue, passive=True)
            backlog = declared.message_count
        return {"waiting": backlog + reserved, "active": active, "delayed": delayed}


_job_queue: Optional[CeleryJobQueue] = None


def get_job_queue() -> CeleryJobQueue:
    global _job_queue
    if _job_queue is None:
        _job_queue = CeleryJobQueue()
    return _job_queue
