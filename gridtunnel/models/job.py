from dataclasses import dataclass
from enum import Enum


class JobState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    OTHER = "other"

    @classmethod
    def from_code(cls, code: str) -> "JobState":
        code = code.strip()
        if code == "r":
            return cls.RUNNING
        if "q" in code or "w" in code:
            return cls.PENDING
        return cls.OTHER


@dataclass(frozen=True)
class JobRecord:
    job_id: str
    full_name: str
    state: JobState
    state_code: str = ""
    queue: str | None = None


@dataclass(frozen=True)
class ResolvedEndpoint:
    node: str
    port: int

    def __post_init__(self):
        if not 1 <= self.port <= 65535:
            raise ValueError(f"Port {self.port} out of range")
