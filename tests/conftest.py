import logging

import pytest

from gridtunnel.config import Settings
from gridtunnel.control.lifecycle import LifecycleContext
from gridtunnel.models.job import JobRecord, JobState


def make_record(job_id, name, code="r", queue="all.q@node3c01.cluster.local"):
    return JobRecord(
        job_id=job_id,
        full_name=name,
        state=JobState.from_code(code),
        state_code=code,
        queue=queue,
    )


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.waits: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> bool:
        self.waits.append(seconds)
        self.now += seconds
        return False


class FakeScheduler:
    def __init__(self, jobs=None, job_id="1001"):
        self.jobs = list(jobs or [])
        self.job_id = job_id
        self.listing = None
        self.queries = 0
        self.submitted = []
        self.cancelled = []

    def list_jobs(self, user):
        self.queries += 1
        if self.listing is not None:
            return list(self.listing(self))
        return list(self.jobs)

    def submit_job(self, name, params, script_path, args=()):
        self.submitted.append((name, params, script_path, list(args)))
        return self.job_id

    def cancel_job(self, job_id):
        self.cancelled.append(job_id)
        self.jobs = [j for j in self.jobs if j.job_id != job_id]


class FakeBridge:
    def __init__(self, status=0):
        self.status = status
        self.reachable = []
        self.relayed = []

    def wait_reachable(self, endpoint, context):
        self.reachable.append(endpoint)
        return 1

    def relay(self, endpoint):
        self.relayed.append(endpoint)
        return self.status


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def bridge():
    return FakeBridge()


@pytest.fixture
def settings(tmp_path):
    return Settings(job_script=tmp_path / "bootstrap.py", interpreter="/usr/bin/python3")


@pytest.fixture
def context(clock, settings):
    return LifecycleContext(settings.timeout_seconds, clock=clock, waiter=clock.sleep)


@pytest.fixture(name="make_record")
def make_record_fixture():
    return make_record


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logger = logging.getLogger("gridtunnel")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
