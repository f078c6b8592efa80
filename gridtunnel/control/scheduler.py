import logging
import re
import shlex
import subprocess
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path
from xml.sax.saxutils import unescape

from gridtunnel.models.job import JobRecord, JobState

logger = logging.getLogger(__name__)

Runner = Callable[..., subprocess.CompletedProcess]

_RECORD_OPEN = re.compile(r"<job_list\b")
_RECORD_CLOSE = re.compile(r"</job_list>")
_FIELD = re.compile(r"<(JB_job_number|JB_name|state|queue_name)>(.*?)</\1>")


def parse_job_listing(lines: Iterable[str]) -> list[JobRecord]:
    """Parse ``qstat -xml`` output into job records.

    Records are delimited by ``<job_list>`` markers and only emitted once the
    closing marker is seen; records missing an id, name or state are dropped.
    """
    records = []
    in_record = False
    fields: dict[str, str] = {}
    for line in lines:
        if _RECORD_OPEN.search(line):
            in_record = True
            fields = {}
            continue
        if not in_record:
            continue
        if _RECORD_CLOSE.search(line):
            in_record = False
            record = _build_record(fields)
            if record is not None:
                records.append(record)
            continue
        match = _FIELD.search(line)
        if match:
            fields[match.group(1)] = unescape(match.group(2).strip())
    return records


def _build_record(fields: dict[str, str]) -> JobRecord | None:
    job_id = fields.get("JB_job_number")
    name = fields.get("JB_name")
    code = fields.get("state")
    if not job_id or not name or not code:
        logger.debug("Skipping incomplete job record: %s", fields)
        return None
    return JobRecord(
        job_id=job_id,
        full_name=name,
        state=JobState.from_code(code),
        state_code=code,
        queue=fields.get("queue_name") or None,
    )


class SchedulerClient:
    def __init__(self, runner: Runner = subprocess.run):
        self._runner = runner

    def _run(self, command: list[str]) -> subprocess.CompletedProcess | None:
        try:
            result = self._runner(command, capture_output=True, text=True, check=False)
        except OSError:
            logger.debug("Failed to run %s", command[0], exc_info=True)
            return None
        if result.returncode != 0:
            logger.debug(
                "%s exited with %s: %s", command[0], result.returncode, (result.stderr or "").strip()
            )
            return None
        return result

    def list_jobs(self, user: str) -> list[JobRecord]:
        result = self._run(["qstat", "-u", user, "-xml"])
        if result is None:
            return []
        return parse_job_listing((result.stdout or "").splitlines())

    def submit_job(
        self, name: str, params: str, script_path: str | Path, args: Sequence[str] = ()
    ) -> str | None:
        command = ["qsub", "-terse", "-N", name, *shlex.split(params), str(script_path), *args]
        result = self._run(command)
        if result is None:
            return None
        output = (result.stdout or "").split()
        if not output:
            return None
        # Array jobs report "<id>.<first>-<last>:<step>".
        return output[0].split(".", 1)[0]

    def cancel_job(self, job_id: str):
        self._run(["qdel", job_id])
