"""Tests for the credential hierarchy builder."""

import threading

import pytest

from natsforge.credentials import build_credentials
from natsforge.models import (
    DuplicateEntityError,
    DuplicateIssuanceError,
    IssuanceCancelledError,
    IssuanceError,
    OperatorStep,
    ProcessUnavailableError,
    SignerRejectedError,
)
from natsforge.ordering import issuance_plan


def test_issues_every_step_in_order(topology, signer):
    plan = issuance_plan(topology)
    issued = build_credentials(topology, plan, signer)
    assert list(issued) == ["O", "svc", "worker"]
    assert signer.calls == [("operator", "O"), ("account", "svc"), ("user", "worker")]
    assert issued["worker"].creds_path.name == "svc-worker.creds"
    assert [c.name for c in issued.of_kind("account")] == ["svc"]


def test_credentials_are_read_only(topology, signer):
    issued = build_credentials(topology, issuance_plan(topology), signer)
    with pytest.raises(TypeError):
        issued["x"] = issued["O"]


@pytest.mark.parametrize("failing", range(1, 8))
def test_abort_keeps_completed_prefix(fleet, failing_signer, failing):
    plan = issuance_plan(fleet)
    assert len(plan) == 7
    name = plan[failing - 1].name
    signer = failing_signer({name: [SignerRejectedError("rejected")]})
    with pytest.raises(IssuanceError) as info:
        build_credentials(fleet, plan, signer)
    err = info.value
    assert err.position == failing
    assert err.step == plan[failing - 1]
    assert list(err.completed) == [step.name for step in plan[: failing - 1]]
    assert isinstance(err.cause, SignerRejectedError)
    assert [call[1] for call in signer.calls] == [step.name for step in plan[:failing]]


def test_unavailable_signer_is_retried(topology, failing_signer):
    signer = failing_signer({"svc": [ProcessUnavailableError("gone"), ProcessUnavailableError("gone")]})
    issued = build_credentials(topology, issuance_plan(topology), signer, retries=2)
    assert list(issued) == ["O", "svc", "worker"]
    assert [call[1] for call in signer.calls].count("svc") == 3


def test_retries_exhausted(topology, failing_signer):
    signer = failing_signer({"svc": [ProcessUnavailableError("gone")] * 3})
    with pytest.raises(IssuanceError) as info:
        build_credentials(topology, issuance_plan(topology), signer, retries=1)
    assert info.value.position == 2
    assert isinstance(info.value.cause, ProcessUnavailableError)
    assert [call[1] for call in signer.calls] == ["O", "svc", "svc"]


def test_duplicate_is_not_retried(topology, failing_signer):
    signer = failing_signer({"O": [DuplicateEntityError("operator O already exists")]})
    with pytest.raises(DuplicateIssuanceError) as info:
        build_credentials(topology, issuance_plan(topology), signer)
    assert info.value.position == 1
    assert info.value.step == OperatorStep("O")
    assert len(info.value.completed) == 0
    assert signer.calls == [("operator", "O")]


def test_second_run_on_same_signer_fails_as_duplicate(topology, signer):
    plan = issuance_plan(topology)
    build_credentials(topology, plan, signer)
    with pytest.raises(DuplicateIssuanceError):
        build_credentials(topology, plan, signer)


def test_reuse_existing_operator(topology, signer):
    plan = issuance_plan(topology)
    first = build_credentials(topology, plan[:1], signer)
    topology.operator.reuse_existing = True
    second = build_credentials(topology, plan, signer)
    assert second["O"] == first["O"]


def test_cancel_before_start(topology, signer):
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(IssuanceCancelledError) as info:
        build_credentials(topology, issuance_plan(topology), signer, cancel=cancel)
    assert info.value.position == 1
    assert signer.calls == []


def test_cancel_between_steps(topology, signer):
    cancel = threading.Event()
    seen = []

    def on_step(step, credential):
        seen.append(credential.name)
        cancel.set()

    with pytest.raises(IssuanceCancelledError) as info:
        build_credentials(
            topology, issuance_plan(topology), signer, cancel=cancel, on_step=on_step
        )
    assert seen == ["O"]
    assert info.value.position == 2
    assert list(info.value.completed) == ["O"]
    assert signer.calls == [("operator", "O")]
