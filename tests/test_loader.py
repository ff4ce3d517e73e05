"""Tests for loading topology documents."""

import json

import pytest

from natsforge.loader import load_topology, parse_topology
from natsforge.models import Edge, EdgeKind, HubNode, LeafNode, StructuralError
from natsforge.validate import validate

FLEET_TOML = """
system_account = "SYS"

[operator]
name = "O"

[[accounts]]
name = "SYS"

[[accounts]]
name = "svc"
jetstream = true
max_connections = 100

[[accounts.exports]]
subject = "svc.>"
service = true

[[accounts.users]]
name = "worker"
allow = ["svc.>"]
deny = ["svc.admin"]
expiry = "2027-01-01T00:00:00Z"

[[accounts]]
name = "app"

[[accounts.imports]]
subject = "svc.api"
account = "svc"

[[users]]
name = "app-user"
account = "app"

[[hubs]]
name = "hub-1"
host = "10.0.0.1"
cluster = "core"
peers = ["hub-2"]

[hubs.jetstream]
domain = "core"

[[hubs]]
name = "hub-2"
host = "10.0.0.2"
cluster = "core"
peers = ["hub-1"]

[[leaves]]
name = "leaf-1"
hub = "hub-1"
account = "svc"
user = "worker"

[leaves.mappings]
"in.*" = "svc.{{wildcard(1)}}"
"""


class TestToml:
    def test_fleet(self):
        topo = parse_topology(FLEET_TOML)
        assert topo.operator.name == "O"
        assert topo.system_account == "SYS"
        assert list(topo.accounts) == ["SYS", "svc", "app"]
        svc = topo.accounts["svc"]
        assert svc.jetstream
        assert svc.limits.max_connections == 100
        assert svc.exports[0].service
        assert topo.accounts["app"].imports[0].account == "svc"

        assert list(topo.users) == ["worker", "app-user"]
        worker = topo.users["worker"]
        assert worker.account == "svc"
        assert worker.permissions.deny == ["svc.admin"]
        assert worker.expiry == "2027-01-01T00:00:00Z"

        assert isinstance(topo.nodes["hub-1"], HubNode)
        assert topo.nodes["hub-1"].jetstream.domain == "core"
        leaf = topo.nodes["leaf-1"]
        assert isinstance(leaf, LeafNode)
        assert leaf.mappings == {"in.*": "svc.{{wildcard(1)}}"}

        assert Edge(EdgeKind.CLUSTER, "hub-1", "hub-2") in topo.edges
        assert Edge(EdgeKind.CLUSTER, "hub-2", "hub-1") in topo.edges
        assert Edge(EdgeKind.LEAF, "leaf-1", "hub-1") in topo.edges
        assert validate(topo).ok

    def test_unresolved_references_are_kept(self):
        topo = parse_topology(
            """
            [operator]
            name = "O"

            [[users]]
            name = "worker"
            account = "missing"

            [[accounts]]
            name = "svc"

            [[accounts]]
            name = "svc"
            """
        )
        assert topo.users["worker"].account == "missing"
        assert topo.duplicates == [("account", "svc")]
        assert len(validate(topo).violations) == 2

    def test_missing_operator(self):
        with pytest.raises(StructuralError, match="malformed"):
            parse_topology('[[accounts]]\nname = "svc"\n')

    def test_not_toml(self):
        with pytest.raises(StructuralError):
            parse_topology("operator = [")

    def test_nested_user_with_other_account(self):
        text = """
        [operator]
        name = "O"

        [[accounts]]
        name = "svc"

        [[accounts.users]]
        name = "worker"
        account = "app"
        """
        with pytest.raises(StructuralError, match="nested under account svc"):
            parse_topology(text)

    def test_top_level_user_needs_account(self):
        with pytest.raises(StructuralError, match="must declare an account"):
            parse_topology('[operator]\nname = "O"\n[[users]]\nname = "worker"\n')


class TestFiles:
    def test_json_by_suffix(self, tmp_path):
        path = tmp_path / "fleet.json"
        path.write_text(
            json.dumps(
                {
                    "operator": {"name": "O"},
                    "accounts": [{"name": "svc", "users": [{"name": "worker"}]}],
                    "hubs": [{"name": "hub-1", "gateways": ["hub-2"]}],
                }
            )
        )
        topo = load_topology(path)
        assert topo.users["worker"].account == "svc"
        assert Edge(EdgeKind.GATEWAY, "hub-1", "hub-2") in topo.edges

    def test_toml_file(self, tmp_path):
        path = tmp_path / "fleet.toml"
        path.write_text(FLEET_TOML)
        assert list(load_topology(str(path)).nodes) == ["hub-1", "hub-2", "leaf-1"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(StructuralError, match="cannot read topology"):
            load_topology(tmp_path / "nope.toml")

    def test_unsupported_format(self):
        with pytest.raises(StructuralError, match="unsupported"):
            parse_topology("{}", fmt="yaml")
