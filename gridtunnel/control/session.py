from collections.abc import Callable

from gridtunnel.control.lifecycle import Scheduler
from gridtunnel.control.matcher import find_by_prefix, resolve_endpoint
from gridtunnel.errors import InvalidChoice, NoRunningJob
from gridtunnel.models.session import JobClass, SessionRequest

CHOICES = {"1": JobClass.CPU, "2": JobClass.GPU}


def resolve_nodes(scheduler: Scheduler, user: str, base_name: str) -> dict[JobClass, str]:
    records = scheduler.list_jobs(user)
    nodes = {}
    for job_class in CHOICES.values():
        prefix = SessionRequest(job_class, base_name).name_prefix
        endpoint = resolve_endpoint(find_by_prefix(records, prefix))
        if endpoint is not None:
            nodes[job_class] = endpoint.node
    return nodes


def choose_node(
    scheduler: Scheduler,
    user: str,
    base_name: str,
    prompt: Callable[[dict[JobClass, str]], str],
) -> tuple[JobClass, str]:
    """Pick the node for a direct shell, asking only when both classes are up."""
    nodes = resolve_nodes(scheduler, user, base_name)
    if not nodes:
        raise NoRunningJob()
    if len(nodes) == 1:
        return next(iter(nodes.items()))
    choice = prompt(nodes).strip()
    if choice not in CHOICES:
        raise InvalidChoice(choice)
    job_class = CHOICES[choice]
    return job_class, nodes[job_class]
