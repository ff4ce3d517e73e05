"""Tests for the full generation pipeline."""

import pytest

from natsforge.config import Config
from natsforge.models import (
    EdgeKind,
    HubNode,
    IssuanceError,
    Operator,
    SignerRejectedError,
    Topology,
    User,
    ValidationError,
)
from natsforge.orchestrator import orchestrate


def test_scenario(topology, signer):
    artifacts = orchestrate(topology, signer)
    assert list(artifacts.credentials) == ["O", "svc", "worker"]
    assert list(artifacts.configs) == ["hub-1", "leaf-1"]
    assert artifacts.credentials["svc"].subject in artifacts.configs["leaf-1"]
    assert "resolver: MEMORY" in artifacts.resolver
    assert [step.name for step in artifacts.plan] == ["O", "svc", "worker"]
    assert artifacts.warnings == []


def test_invalid_topology_issues_nothing(topology, signer):
    topology.users["ghost"] = User("ghost", "missing")
    with pytest.raises(ValidationError) as info:
        orchestrate(topology, signer)
    assert [v.message for v in info.value.violations] == [
        "user ghost references missing account missing"
    ]
    assert signer.calls == []


def test_issuance_failure_propagates(topology, failing_signer):
    signer = failing_signer({"worker": [SignerRejectedError("bad permissions")]})
    with pytest.raises(IssuanceError) as info:
        orchestrate(topology, signer)
    assert info.value.position == 3
    assert list(info.value.completed) == ["O", "svc"]


def test_peer_policy_from_config(signer):
    topo = Topology(Operator("O"))
    topo.add_node(HubNode("a"))
    topo.add_node(HubNode("b", port=4333))
    topo.add_edge(EdgeKind.CLUSTER, "a", "b")

    artifacts = orchestrate(topo, signer, Config())
    assert [w.subject for w in artifacts.warnings] == ["a"]

    with pytest.raises(ValidationError):
        orchestrate(topo, signer, Config(peer_policy="strict"))
