import pytest

from gridtunnel.control.session import choose_node
from gridtunnel.errors import InvalidChoice, NoRunningJob
from gridtunnel.models.session import JobClass


def both_running(make_record):
    return [
        make_record("1", "vscode-remote-cpu_20000", "r", "all.q@node1.cluster.local"),
        make_record("2", "vscode-remote-gpu_30000", "r", "gpu@node3c01.cluster.local"),
    ]


def test_choice_two_picks_gpu_node(scheduler, make_record):
    scheduler.jobs = both_running(make_record)
    prompts = []

    def prompt(nodes):
        prompts.append(nodes)
        return "2"

    assert choose_node(scheduler, "alice", "vscode-remote", prompt) == (JobClass.GPU, "node3c01")
    assert prompts == [{JobClass.CPU: "node1", JobClass.GPU: "node3c01"}]


def test_choice_one_picks_cpu_node(scheduler, make_record):
    scheduler.jobs = both_running(make_record)

    assert choose_node(scheduler, "alice", "vscode-remote", lambda nodes: " 1\n") == (
        JobClass.CPU,
        "node1",
    )


@pytest.mark.parametrize("answer", ["", "3", "gpu", "12"])
def test_invalid_choice_fails(scheduler, make_record, answer):
    scheduler.jobs = both_running(make_record)

    with pytest.raises(InvalidChoice):
        choose_node(scheduler, "alice", "vscode-remote", lambda nodes: answer)


def test_single_job_does_not_prompt(scheduler, make_record):
    scheduler.jobs = [
        make_record("2", "vscode-remote-gpu_30000", "r", "gpu@node3c01.cluster.local"),
        make_record("3", "vscode-remote-cpu_20000", "qw", None),
    ]

    def prompt(nodes):
        raise AssertionError("prompted")

    assert choose_node(scheduler, "alice", "vscode-remote", prompt) == (JobClass.GPU, "node3c01")


def test_no_running_job(scheduler):
    with pytest.raises(NoRunningJob, match="No running job found"):
        choose_node(scheduler, "alice", "vscode-remote", lambda nodes: "1")
