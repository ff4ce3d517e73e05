"""
File Chain:
Doc Version: v1.0.0
Date Modified: 2026-10-18

- Called by: orchestrator.py
- Purpose: Linearize identity issuance and node config generation

Both dependency graphs are acyclic by construction (operator < account < user,
hub < leaf), so this is a direct linearization and never checks for cycles.
"""

from natsforge.models import (
    AccountStep,
    IssuanceStep,
    Node,
    OperatorStep,
    Topology,
    UserStep,
)


def issuance_plan(topology: Topology) -> list[IssuanceStep]:
    """operator first, then accounts in insertion order, then users grouped
    by account order and insertion order within each account"""
    plan: list[IssuanceStep] = [OperatorStep(topology.operator.name)]
    plan.extend(AccountStep(name) for name in topology.accounts)
    for account in topology.accounts:
        plan.extend(UserStep(u.name, account) for u in topology.account_users(account))
    return plan


def config_order(topology: Topology) -> list[Node]:
    """hubs before leaves so every hub address is known when a leaf renders"""
    return [*topology.hubs(), *topology.leaves()]
