import pytest

from gridtunnel.control.matcher import (
    decode_node,
    decode_port,
    find_all,
    find_by_prefix,
    matches_prefix,
    resolve_endpoint,
)
from gridtunnel.models.job import ResolvedEndpoint
from gridtunnel.models.session import JobClass, SessionRequest


@pytest.mark.parametrize(
    "name, expected",
    [
        ("vscode-remote-cpu_12345", True),
        ("vscode-remote-cpu_", False),
        ("vscode-remote-cpu", False),
        ("vscode-remote-cpu2_12345", False),
        ("vscode-remote-cpu_12x45", False),
        ("old-vscode-remote-cpu_12345", False),
        ("vscode-remote-cpu_99999", False),
    ],
)
def test_matches_prefix_only_at_start(name, expected):
    assert matches_prefix(name, "vscode-remote-cpu") is expected


def test_find_by_prefix_returns_first_in_order(make_record):
    records = [
        make_record("1", "other_1"),
        make_record("2", "vscode-remote-gpu_20000"),
        make_record("3", "vscode-remote-gpu_30000"),
    ]

    assert find_by_prefix(records, "vscode-remote-gpu").job_id == "2"
    assert find_by_prefix(list(reversed(records)), "vscode-remote-gpu").job_id == "3"
    assert find_by_prefix(records, "vscode-remote-cpu") is None


def test_find_all_matches_every_prefix(make_record):
    records = [
        make_record("1", "vscode-remote-gpu_20000"),
        make_record("2", "notebook_1"),
        make_record("3", "vscode-remote-cpu_30000"),
    ]

    found = find_all(records, ["vscode-remote-cpu", "vscode-remote-gpu"])

    assert [r.job_id for r in found] == ["1", "3"]


def test_port_decoding_inverts_job_naming():
    for port in (10000, 54213, 65000):
        for job_class in JobClass:
            request = SessionRequest(job_class)
            name = request.job_name(port)
            assert matches_prefix(name, request.name_prefix)
            assert decode_port(name) == port


def test_decode_node():
    assert decode_node("gpu@node3c01.cluster.local") == "node3c01"
    assert decode_node("all.q@node7") == "node7"
    assert decode_node(None) == ""
    assert decode_node("") == ""


def test_resolve_endpoint(make_record):
    running = make_record("1", "vscode-remote-gpu_54213", "r", "gpu@node3c01.cluster.local")
    pending = make_record("2", "vscode-remote-gpu_54213", "qw", None)
    deleting = make_record("3", "vscode-remote-gpu_54213", "dr", "gpu@node3c01")

    assert resolve_endpoint(running) == ResolvedEndpoint(node="node3c01", port=54213)
    assert resolve_endpoint(pending) is None
    assert resolve_endpoint(deleting) is None
    assert resolve_endpoint(None) is None


def test_endpoint_rejects_invalid_port():
    with pytest.raises(ValueError):
        ResolvedEndpoint(node="node1", port=0)
