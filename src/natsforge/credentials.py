"""
File Chain:
Doc Version: v1.0.0
Date Modified: 2026-10-18

- Called by: orchestrator.py
- Calls into: signer.py (Signer interface)
- Purpose: Drive the signer through the issuance plan

natsforge Credential Hierarchy Builder

PURPOSE:
    Walks an issuance plan strictly in order and asks the signer for one
    identity per step. Each returned handle is stored in a CredentialSet
    keyed by entity name.

FAILURE SEMANTICS:
    - The first failing step aborts the rest of the plan. The raised
      IssuanceError carries the step, its 1-based position and the
      credentials completed before it.
    - ProcessUnavailableError is retried up to `retries` more times.
      Nothing else is retried, the signer is not idempotent.
    - DuplicateEntityError surfaces as DuplicateIssuanceError: clean the
      signer store, then rerun the whole orchestration.
    - A set cancel event stops the run before the next step with
      IssuanceCancelledError. Issued credentials are never revoked.
"""

import logging
import threading
from collections.abc import Mapping
from typing import Callable, Iterator, Sequence

from natsforge.models import (
    AccountStep,
    DuplicateEntityError,
    DuplicateIssuanceError,
    IssuanceCancelledError,
    IssuanceError,
    IssuanceStep,
    NatsforgeError,
    OperatorStep,
    ProcessUnavailableError,
    Topology,
    UserStep,
)
from natsforge.signer import Credential, Signer

_LOGGER = logging.getLogger(__name__)


class CredentialSet(Mapping):
    """insertion ordered mapping of entity name to credential handle

    Only the builder adds entries; callers get a read-only mapping.
    """

    def __init__(self):
        self._handles: dict[str, Credential] = {}

    def __getitem__(self, name: str) -> Credential:
        return self._handles[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._handles)

    def __len__(self) -> int:
        return len(self._handles)

    def __repr__(self) -> str:
        return f"CredentialSet({list(self._handles)})"

    def _add(self, credential: Credential):
        self._handles[credential.name] = credential

    def snapshot(self) -> "CredentialSet":
        copy = CredentialSet()
        copy._handles = dict(self._handles)
        return copy

    def of_kind(self, kind: str) -> list[Credential]:
        return [c for c in self._handles.values() if c.kind == kind]


def _issue(topology: Topology, step: IssuanceStep, signer: Signer, issued: CredentialSet) -> Credential:
    if isinstance(step, OperatorStep):
        return signer.create_operator(
            step.name, reuse_existing=topology.operator.reuse_existing
        )
    if isinstance(step, AccountStep):
        account = topology.accounts[step.name]
        return signer.create_account(
            issued[topology.operator.name],
            account.name,
            account.limits,
            account.exports,
            account.imports,
            jetstream=account.jetstream,
        )
    if isinstance(step, UserStep):
        user = topology.users[step.name]
        return signer.create_user(
            issued[step.account], user.name, user.permissions, expiry=user.expiry
        )
    raise TypeError(f"unknown issuance step {step!r}")


def build_credentials(
    topology: Topology,
    plan: Sequence[IssuanceStep],
    signer: Signer,
    *,
    retries: int = 2,
    cancel: threading.Event | None = None,
    on_step: Callable[[IssuanceStep, Credential], None] | None = None,
) -> CredentialSet:
    """issue every step of `plan` in order, returns the completed set"""
    issued = CredentialSet()
    for position, step in enumerate(plan, start=1):
        if cancel is not None and cancel.is_set():
            _LOGGER.warning("cancelled before %s", step.describe())
            raise IssuanceCancelledError(step, position, issued.snapshot())
        attempt = 0
        while True:
            try:
                credential = _issue(topology, step, signer, issued)
                break
            except ProcessUnavailableError as exc:
                if attempt >= retries:
                    raise IssuanceError(step, position, issued.snapshot(), exc) from exc
                attempt += 1
                _LOGGER.warning(
                    "signer unavailable for %s, retry %d/%d: %s",
                    step.describe(), attempt, retries, exc,
                )
            except DuplicateEntityError as exc:
                raise DuplicateIssuanceError(step, position, issued.snapshot(), exc) from exc
            except NatsforgeError as exc:
                raise IssuanceError(step, position, issued.snapshot(), exc) from exc
        issued._add(credential)  # pylint: disable=protected-access
        _LOGGER.info("issued %s: %s", step.describe(), credential.subject)
        if on_step is not None:
            on_step(step, credential)
    return issued
