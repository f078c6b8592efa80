from __future__ import annotations

import logging
import random
import threading
import time
from collections.abc import Callable, Sequence
from enum import Enum
from typing import Protocol

from gridtunnel.config import Settings
from gridtunnel.control.matcher import decode_node, find_all, find_by_prefix, resolve_endpoint
from gridtunnel.errors import JobStartTimeout, SessionInterrupted
from gridtunnel.models.job import JobRecord, JobState, ResolvedEndpoint
from gridtunnel.models.session import SessionRequest

logger = logging.getLogger(__name__)


class Scheduler(Protocol):
    def list_jobs(self, user: str) -> list[JobRecord]: ...

    def submit_job(
        self, name: str, params: str, script_path, args: Sequence[str] = ()
    ) -> str | None: ...

    def cancel_job(self, job_id: str): ...


class Bridge(Protocol):
    def wait_reachable(self, endpoint: ResolvedEndpoint, context: LifecycleContext) -> int: ...

    def relay(self, endpoint: ResolvedEndpoint) -> int: ...


class SessionState(str, Enum):
    NO_JOB = "no_job"
    SUBMITTING = "submitting"
    PENDING = "pending"
    RUNNING = "running"
    CONNECTED = "connected"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"


class LifecycleContext:
    """Deadline, interruption flag and cleanup obligation of one ``connect`` call.

    ``wait`` sleeps on an event so ``interrupt`` (called from a signal handler)
    wakes it immediately. ``waiter`` replaces the sleep, e.g. with a fake clock.
    """

    def __init__(
        self,
        timeout_seconds: int,
        clock: Callable[[], float] = time.monotonic,
        waiter: Callable[[float], bool] | None = None,
    ):
        self.timeout_seconds = timeout_seconds
        self.clock = clock
        self.start_time = clock()
        self.submitted_job_id: str | None = None
        self.connected = False
        self.signum: int | None = None
        self._stop = threading.Event()
        self._waiter = waiter or self._stop.wait

    @property
    def interrupted(self) -> bool:
        return self._stop.is_set()

    def elapsed(self) -> float:
        return self.clock() - self.start_time

    def check_deadline(self):
        if self.elapsed() > self.timeout_seconds:
            raise JobStartTimeout(self.timeout_seconds)

    def interrupt(self, signum: int | None = None):
        self.signum = signum
        self._stop.set()

    def check_interrupted(self):
        if self.interrupted:
            raise SessionInterrupted(self.signum)

    def wait(self, seconds: float):
        self.check_interrupted()
        self._waiter(seconds)
        self.check_interrupted()

    def cleanup(self, scheduler: Scheduler) -> bool:
        job_id, self.submitted_job_id = self.submitted_job_id, None
        if job_id is None:
            return False
        scheduler.cancel_job(job_id)
        logger.warning("Cancelled pending job %s", job_id)
        return True

    def release(self):
        self.submitted_job_id = None
        self.connected = True


class LifecycleController:
    def __init__(
        self,
        scheduler: Scheduler,
        settings: Settings,
        context: LifecycleContext,
        user: str,
        bridge: Bridge | None = None,
        rng: random.Random | None = None,
    ):
        self.scheduler = scheduler
        self.settings = settings
        self.context = context
        self.user = user
        self.bridge = bridge
        self.rng = rng or random.Random()
        self.state = SessionState.NO_JOB
        self.polls = 0

    def query(self, request: SessionRequest) -> JobRecord | None:
        record = find_by_prefix(self.scheduler.list_jobs(self.user), request.name_prefix)
        self.context.check_interrupted()
        if record is not None:
            node = decode_node(record.queue)
            logger.info(
                "Job is %s (id: %s, name: %s%s)",
                record.state_code,
                record.job_id,
                record.full_name,
                f", node: {node}" if node else "",
            )
        return record

    def submit(self, request: SessionRequest) -> str | None:
        self.state = SessionState.SUBMITTING
        port = self.rng.randint(*self.settings.port_range)
        job_id = self.scheduler.submit_job(
            request.job_name(port),
            self.settings.submission_params(request.job_class),
            self.settings.job_script,
            [str(port)],
        )
        self.context.submitted_job_id = job_id
        logger.info("Submitted new %s job (id: %s)", request.name_prefix, job_id or "unknown")
        self.state = SessionState.PENDING
        return job_id

    def wait_until_running(self, request: SessionRequest) -> ResolvedEndpoint:
        record = self.query(request)
        submitted = record is None
        if submitted:
            self.submit(request)
        else:
            self.state = SessionState.PENDING
        while True:
            if record is None and not submitted:
                logger.info("Job for %s disappeared, submitting a new one", request.name_prefix)
                self.submit(request)
                submitted = True
            if record is not None and record.state is JobState.RUNNING:
                endpoint = resolve_endpoint(record)
                if endpoint is not None:
                    self.state = SessionState.RUNNING
                    return endpoint
                logger.info("Job %s is running without a node yet", record.job_id)
            self.context.check_deadline()
            self.context.wait(self.settings.job_poll_interval)
            record = self.query(request)
            self.polls += 1

    def establish(self, request: SessionRequest) -> ResolvedEndpoint:
        if self.bridge is None:
            raise RuntimeError("No bridge configured")
        try:
            endpoint = self.wait_until_running(request)
            logger.info("Connecting to %s", endpoint.node)
            self.bridge.wait_reachable(endpoint, self.context)
            self.context.check_interrupted()
        except JobStartTimeout:
            self.state = SessionState.TIMED_OUT
            raise
        except (SessionInterrupted, KeyboardInterrupt):
            self.state = SessionState.CANCELLED
            raise
        finally:
            if self.state is not SessionState.RUNNING:
                self.context.cleanup(self.scheduler)
        self.context.release()
        self.state = SessionState.CONNECTED
        return endpoint

    def connect(self, request: SessionRequest) -> int:
        endpoint = self.establish(request)
        return self.bridge.relay(endpoint)


def list_jobs(
    scheduler: Scheduler, user: str, requests: Sequence[SessionRequest]
) -> list[JobRecord]:
    return find_all(scheduler.list_jobs(user), [r.name_prefix for r in requests])


def cancel_jobs(
    scheduler: Scheduler,
    user: str,
    requests: Sequence[SessionRequest],
    context: LifecycleContext,
    poll_interval: float,
    report: Callable[[str], None] | None = None,
) -> list[str]:
    attempts = []
    records = list_jobs(scheduler, user, requests)
    while records:
        record = records[0]
        node = decode_node(record.queue)
        if report is not None:
            report(f"Cancelling running job {record.job_id}{f' on {node}' if node else ''}")
        scheduler.cancel_job(record.job_id)
        attempts.append(record.job_id)
        context.check_deadline()
        context.wait(poll_interval)
        records = list_jobs(scheduler, user, requests)
    return attempts
