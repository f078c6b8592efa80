from dataclasses import dataclass
from enum import Enum


class JobClass(str, Enum):
    CPU = "cpu"
    GPU = "gpu"


@dataclass(frozen=True)
class SessionRequest:
    job_class: JobClass
    base_name: str = "vscode-remote"

    @property
    def name_prefix(self) -> str:
        return f"{self.base_name}-{self.job_class.value}"

    def job_name(self, port: int) -> str:
        return f"{self.name_prefix}_{port}"
