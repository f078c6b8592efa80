"""Operator-set defaults for submitting and reaching session jobs.

Edit the constants below to match your cluster. Mirror what you would pass to
qsub/qlogin: a GPU session started with ``qlogin -q gpu -l gpu=1 -pe sharedmem 8``
becomes ``SGE_PARAM_GPU = "-q gpu -l gpu=1 -pe sharedmem 8 -o /dev/null -e /dev/null"``.
The same values can be overridden through the environment for a single account.
"""

import os
import shlex
import sys
from dataclasses import dataclass, field
from pathlib import Path

from gridtunnel.agent import bootstrap
from gridtunnel.models.session import JobClass

BASE_JOB_NAME = "vscode-remote"
SGE_PARAM_CPU = "-q all.q -o /dev/null -e /dev/null"
SGE_PARAM_GPU = "-q gpu -l gpu=1 -o /dev/null -e /dev/null"
# Seconds a job may take to start before the pending job is cancelled.
START_TIMEOUT = 30

JOB_POLL_INTERVAL = 5.0
PROBE_INTERVAL = 1.0
CANCEL_POLL_INTERVAL = 2.0
PORT_RANGE = (10000, 65000)

ENV_PREFIX = "VSCODE_REMOTE_"


@dataclass
class Settings:
    base_name: str = BASE_JOB_NAME
    params: dict[JobClass, str] = field(
        default_factory=lambda: {JobClass.CPU: SGE_PARAM_CPU, JobClass.GPU: SGE_PARAM_GPU}
    )
    timeout_seconds: int = START_TIMEOUT
    job_poll_interval: float = JOB_POLL_INTERVAL
    probe_interval: float = PROBE_INTERVAL
    cancel_poll_interval: float = CANCEL_POLL_INTERVAL
    port_range: tuple[int, int] = PORT_RANGE
    job_script: Path = field(default_factory=lambda: Path(bootstrap.__file__).resolve())
    interpreter: str = sys.executable or "python3"

    def submission_params(self, job_class: JobClass) -> str:
        return f"{self.params[job_class]} -S {shlex.quote(self.interpreter)}"


def load_settings(environ: dict[str, str] | None = None) -> Settings:
    env = os.environ if environ is None else environ
    settings = Settings()
    if name := env.get(f"{ENV_PREFIX}JOB_NAME"):
        settings.base_name = name
    for job_class in JobClass:
        params = env.get(f"{ENV_PREFIX}SGE_PARAM_{job_class.name}")
        if params is not None:
            settings.params[job_class] = params
    if timeout := env.get(f"{ENV_PREFIX}TIMEOUT"):
        try:
            settings.timeout_seconds = int(timeout)
        except ValueError as err:
            raise ValueError(f"{ENV_PREFIX}TIMEOUT must be an integer, got {timeout!r}") from err
    return settings
