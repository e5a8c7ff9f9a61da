"""Tests for the RQ worker entry point."""
from unittest.mock import MagicMock, patch

from leadloop import worker
from leadloop.pipeline.manager import QUEUE_NAME


class TestBuildWorker:

    def test_listens_on_run_queue(self):
        conn = MagicMock()
        with patch.object(worker, 'Queue') as queue_cls, patch.object(worker, 'Worker') as worker_cls:
            built = worker.build_worker(conn)
        queue_cls.assert_called_once_with(QUEUE_NAME, connection=conn)
        worker_cls.assert_called_once_with([queue_cls.return_value], connection=conn)
        assert built is worker_cls.return_value


class TestMain:

    def test_configures_then_works(self):
        rq_worker = MagicMock()
        rq_worker.queue_names.return_value = [QUEUE_NAME]
        rq_worker.work.return_value = True
        with patch('leadloop.logging_config.configure_logging') as configure, \
                patch('leadloop.services.circuit_breaker.init_breakers') as breakers, \
                patch('leadloop.database.init_db') as init_db, \
                patch.object(worker, 'build_worker', return_value=rq_worker):
            assert worker.main(burst=True) is True
        configure.assert_called_once_with()
        breakers.assert_called_once()
        init_db.assert_called_once_with()
        rq_worker.work.assert_called_once_with(burst=True)
