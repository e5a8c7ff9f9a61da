"""
RQ worker entry point: python -m leadloop.worker

Executes the run_batch jobs that launch_run() enqueues. Sets up logging,
circuit breakers and tables the same way create_app() does.
"""
import logging

from rq import Queue, Worker

logger = logging.getLogger('leadloop.worker')


def build_worker(connection=None) -> Worker:
    from leadloop.extensions import redis_client
    from leadloop.pipeline.manager import QUEUE_NAME

    connection = connection or redis_client
    return Worker([Queue(QUEUE_NAME, connection=connection)], connection=connection)


def main(burst: bool = False):
    from leadloop.database import init_db
    from leadloop.extensions import redis_client
    from leadloop.logging_config import configure_logging
    from leadloop.services.circuit_breaker import init_breakers

    configure_logging()
    init_breakers(redis_client)
    init_db()

    worker = build_worker(redis_client)
    logger.info("=== leadloop worker starting (queue=%s, burst=%s) ===",
                ', '.join(worker.queue_names()), burst)
    return worker.work(burst=burst)


if __name__ == '__main__':
    import sys
    main(burst='--burst' in sys.argv[1:])
