"""
Hand-off of work items to the background worker.

The engine only enqueues; it never observes the outcome of a job.
"""
import logging
from typing import Protocol, runtime_checkable

from tvsync.schemas import Job

logger = logging.getLogger(__name__)


@runtime_checkable
class JobQueue(Protocol):
    def enqueue(self, job: Job) -> None:
        ...


class CeleryJobQueue:
    """Sends each job to the Celery task it names."""

    def __init__(self, celery_app):
        self.celery_app = celery_app

    def enqueue(self, job: Job) -> None:
        logger.debug(f"Queueing {job.task_name} {job.task_kwargs()}")
        self.celery_app.send_task(job.task_name, kwargs=job.task_kwargs())
