"""
File Chain:
Doc Version: v1.0.0
Date Modified: 2026-10-18

- Called by: main.py
- Calls into: validate.py, ordering.py, credentials.py, synth.py
- Purpose: Compose validation, ordering, issuance and synthesis

The orchestrator performs no I/O of its own. Signer side effects happen in
the credential builder, persisting the artifacts is up to the caller
(see output.py). The first hard failure ends the run and no artifacts are
returned.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable

from natsforge.config import Config
from natsforge.credentials import CredentialSet, build_credentials
from natsforge.models import IssuanceStep, Topology
from natsforge.ordering import config_order, issuance_plan
from natsforge.signer import Credential, Signer
from natsforge.synth import render_resolver, synthesize
from natsforge.validate import Violation, validate

_LOGGER = logging.getLogger(__name__)


@dataclass
class Artifacts:
    """complete, internally consistent output of one run"""

    credentials: CredentialSet
    configs: dict[str, str]
    resolver: str
    plan: list[IssuanceStep] = field(default_factory=list)
    warnings: list[Violation] = field(default_factory=list)


def orchestrate(
    topology: Topology,
    signer: Signer,
    cfg: Config | None = None,
    *,
    cancel: threading.Event | None = None,
    on_step: Callable[[IssuanceStep, Credential], None] | None = None,
) -> Artifacts:
    """validate -> order -> issue credentials -> synthesize configs"""
    cfg = cfg or Config()

    report = validate(topology, cfg.policy)
    for warning in report.warnings:
        _LOGGER.warning(warning)
    report.raise_for_violations()

    plan = issuance_plan(topology)
    _LOGGER.warning("Issuing %d identities", len(plan))
    credentials = build_credentials(
        topology, plan, signer, retries=cfg.retries, cancel=cancel, on_step=on_step
    )

    _LOGGER.warning("Creating node configurations")
    configs = synthesize(topology, credentials, config_order(topology), cfg)
    resolver = render_resolver(topology, credentials, cfg)
    return Artifacts(credentials, configs, resolver, plan, report.warnings)
