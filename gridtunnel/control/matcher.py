import re
from collections.abc import Iterable, Sequence

from gridtunnel.models.job import JobRecord, JobState, ResolvedEndpoint

SEPARATOR = "_"


def decode_port(full_name: str) -> int | None:
    _, sep, suffix = full_name.rpartition(SEPARATOR)
    if not sep or not suffix.isdigit():
        return None
    port = int(suffix)
    return port if 1 <= port <= 65535 else None


def decode_node(queue: str | None) -> str:
    if not queue or "@" not in queue:
        return ""
    return queue.split("@", 1)[1].split(".", 1)[0]


def matches_prefix(full_name: str, prefix: str) -> bool:
    if not re.fullmatch(rf"{re.escape(prefix)}{SEPARATOR}\d+", full_name):
        return False
    return decode_port(full_name) is not None


def find_by_prefix(records: Iterable[JobRecord], prefix: str) -> JobRecord | None:
    # One job per class is assumed; the first in scheduler order wins.
    return next((r for r in records if matches_prefix(r.full_name, prefix)), None)


def find_all(records: Iterable[JobRecord], prefixes: Sequence[str]) -> list[JobRecord]:
    return [r for r in records if any(matches_prefix(r.full_name, p) for p in prefixes)]


def resolve_endpoint(record: JobRecord | None) -> ResolvedEndpoint | None:
    if record is None or record.state not in (JobState.PENDING, JobState.RUNNING):
        return None
    port = decode_port(record.full_name)
    node = decode_node(record.queue)
    if port is None or not node:
        return None
    return ResolvedEndpoint(node=node, port=port)
