"""shared fixtures for the natsforge tests"""

import pytest

from natsforge.models import (
    Account,
    EdgeKind,
    Export,
    HubNode,
    Import,
    JetStreamSettings,
    LeafNode,
    Limits,
    Operator,
    Permissions,
    Topology,
    User,
)
from natsforge.signer import MemorySigner


class FailingSigner(MemorySigner):
    """memory signer raising queued errors for selected entity names"""

    def __init__(self, failures, **kwargs):
        super().__init__(**kwargs)
        self.failures = {name: list(errors) for name, errors in failures.items()}

    def _issue(self, kind, name, issuer, **claims):
        pending = self.failures.get(name)
        if pending:
            self.calls.append((kind, name))
            raise pending.pop(0)
        return super()._issue(kind, name, issuer, **claims)


@pytest.fixture
def topology():
    """operator O, account svc, user worker, hub-1 and leaf-1"""
    topo = Topology(Operator("O"))
    topo.add_account(Account("svc", jetstream=True, limits=Limits(max_connections=100)))
    topo.add_user(User("worker", "svc", Permissions(allow=["svc.>"])))
    topo.add_node(HubNode("hub-1", host="10.0.0.1"))
    topo.add_node(LeafNode("leaf-1", hub="hub-1", account="svc", user="worker"))
    return topo


@pytest.fixture
def fleet():
    """two clusters joined by a gateway, with a leaf on each"""
    topo = Topology(Operator("O"), system_account="SYS")
    topo.add_account(Account("SYS"))
    topo.add_account(
        Account("svc", jetstream=True, exports=[Export("svc.>", service=True)])
    )
    topo.add_account(Account("app", imports=[Import("svc.api", "svc")]))
    topo.add_user(User("sys-admin", "SYS"))
    topo.add_user(User("worker", "svc", Permissions(allow=["svc.>"], deny=["svc.admin"])))
    topo.add_user(User("app-user", "app"))
    topo.add_node(
        HubNode("east-1", host="10.0.0.1", cluster="east", jetstream=JetStreamSettings(domain="east"))
    )
    topo.add_node(
        HubNode("east-2", host="10.0.0.2", cluster="east", jetstream=JetStreamSettings(domain="east"))
    )
    topo.add_node(
        HubNode("west-1", host="10.1.0.1", cluster="west", jetstream=JetStreamSettings(domain="west"))
    )
    topo.add_node(
        LeafNode(
            "leaf-1",
            hub="east-1",
            account="svc",
            user="worker",
            jetstream=JetStreamSettings(domain="leaf-1", max_memory=1024),
        )
    )
    topo.add_node(
        LeafNode("leaf-2", hub="west-1", account="app", jetstream=JetStreamSettings(domain="leaf-2"))
    )
    topo.add_edge(EdgeKind.CLUSTER, "east-1", "east-2")
    topo.add_edge(EdgeKind.CLUSTER, "east-2", "east-1")
    topo.add_edge(EdgeKind.GATEWAY, "east-1", "west-1")
    topo.add_edge(EdgeKind.GATEWAY, "west-1", "east-1")
    return topo


@pytest.fixture
def signer(tmp_path):
    return MemorySigner(creds_dir=tmp_path / "creds")


@pytest.fixture
def failing_signer(tmp_path):
    def factory(failures):
        return FailingSigner(failures, creds_dir=tmp_path / "creds")

    return factory
