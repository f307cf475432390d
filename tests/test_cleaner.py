import logging
from datetime import datetime, timedelta, timezone

import pytest

from fsmonitor.cleaner import start_cleaner
from fsmonitor.models import Instance
from fsmonitor.storage import Registry


@pytest.fixture
def logger():
    return logging.getLogger("fsmonitor.cleaner")


def _run_job(scheduler):
    job = scheduler.get_job("retention_sweep")
    assert job is not None
    job.func()


def test_cleaner_job_removes_expired_instances(logger, caplog):
    registry = Registry(retention_days=30)
    now = datetime.now(timezone.utc)
    registry.add_instance(Instance(instance_id="stale", creation_time=now - timedelta(days=10)))
    registry.add_instance(Instance(instance_id="fresh"))

    scheduler = start_cleaner(registry, logger, days=7, interval_hours=1)
    try:
        with caplog.at_level(logging.INFO, logger="fsmonitor.cleaner"):
            _run_job(scheduler)
    finally:
        scheduler.shutdown(wait=False)

    assert [item.instance_id for item in registry.list_instances()] == ["fresh"]
    assert "event=cleaner_removed" in caplog.text


def test_cleaner_job_logs_errors(logger, caplog):
    class _BrokenRegistry:
        def clear_older_than(self, days):
            raise RuntimeError("boom")

    scheduler = start_cleaner(_BrokenRegistry(), logger, days=7, interval_hours=1)
    try:
        with caplog.at_level(logging.ERROR, logger="fsmonitor.cleaner"):
            _run_job(scheduler)
    finally:
        scheduler.shutdown(wait=False)

    assert "boom" in caplog.text
