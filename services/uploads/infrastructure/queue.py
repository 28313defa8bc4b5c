from __future__ import annotations

from datetime import timedelta

from redis import Redis
from rq import Queue, Worker as RQWorker

from ..application.interfaces import ReconciliationQueue
from ..config import UploadsConfig

RECONCILE_JOB = "services.uploads.worker.reconcile_session"


def create_redis_connection(config: UploadsConfig) -> Redis:
    return Redis(host=config.redis_host, port=config.redis_port, db=config.redis_db)


def create_queue(config: UploadsConfig) -> Queue:
    # token refresh plus two list calls; well under a minute
    return Queue(
        config.reconcile_queue_name,
        connection=create_redis_connection(config),
        default_timeout=120,
    )


def create_worker(config: UploadsConfig) -> RQWorker:
    redis_conn = create_redis_connection(config)
    queue = Queue(config.reconcile_queue_name, connection=redis_conn)
    return RQWorker([queue], connection=redis_conn)


class RqReconciliationQueue(ReconciliationQueue):
    def __init__(self, queue: Queue, *, delay_seconds: int = 0) -> None:
        self._queue = queue
        self._delay_seconds = delay_seconds

    def enqueue(self, *, session_id: str, user_id: str) -> str:
        if self._delay_seconds > 0:
            job = self._queue.enqueue_in(
                timedelta(seconds=self._delay_seconds),
                RECONCILE_JOB,
                session_id,
                user_id,
            )
        else:
            job = self._queue.enqueue(RECONCILE_JOB, session_id, user_id)
        return job.id
