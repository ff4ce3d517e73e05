"""Tests for issuance and config ordering."""

from natsforge.models import (
    Account,
    AccountStep,
    HubNode,
    LeafNode,
    Operator,
    OperatorStep,
    Topology,
    User,
    UserStep,
)
from natsforge.ordering import config_order, issuance_plan


def test_plan_for_scenario(topology):
    assert issuance_plan(topology) == [
        OperatorStep("O"),
        AccountStep("svc"),
        UserStep("worker", "svc"),
    ]


def test_users_grouped_by_account_order():
    topo = Topology(Operator("O"))
    topo.add_account(Account("a"))
    topo.add_account(Account("b"))
    topo.add_user(User("b-1", "b"))
    topo.add_user(User("a-1", "a"))
    topo.add_user(User("b-2", "b"))
    topo.add_user(User("a-2", "a"))
    assert issuance_plan(topo) == [
        OperatorStep("O"),
        AccountStep("a"),
        AccountStep("b"),
        UserStep("a-1", "a"),
        UserStep("a-2", "a"),
        UserStep("b-1", "b"),
        UserStep("b-2", "b"),
    ]


def test_every_step_follows_its_issuer(fleet):
    plan = issuance_plan(fleet)
    position = {step.name: idx for idx, step in enumerate(plan)}
    assert isinstance(plan[0], OperatorStep)
    for step in plan:
        if isinstance(step, UserStep):
            assert position[step.account] < position[step.name]
    assert len(plan) == 1 + len(fleet.accounts) + len(fleet.users)


def test_plan_without_accounts():
    assert issuance_plan(Topology(Operator("O"))) == [OperatorStep("O")]


def test_hubs_before_leaves():
    topo = Topology(Operator("O"))
    topo.add_account(Account("svc"))
    topo.add_node(HubNode("hub-1"))
    topo.add_node(LeafNode("leaf-1", hub="hub-1", account="svc"))
    topo.add_node(HubNode("hub-2"))
    topo.add_node(LeafNode("leaf-2", hub="hub-2", account="svc"))
    assert [n.name for n in config_order(topo)] == ["hub-1", "hub-2", "leaf-1", "leaf-2"]
