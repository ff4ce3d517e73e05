"""
File Chain:
Doc Version: v1.0.0
Date Modified: 2026-10-18

- Called by: orchestrator.py, main.py (--check)
- Purpose: Structural and referential validation of an assembled topology

natsforge Validator - Three-Pass Topology Checks

PURPOSE:
    Checks a fully assembled Topology before any signer call is made. All
    problems are collected so a single run reports everything at once.

PASSES:
    - local: per-entity field checks (names, limits, ports, subjects)
    - reference: user -> account, leaf -> hub/account/user, imports, edges
    - cross: namespace collisions, export coverage of imports, peer and
      gateway symmetry, cluster agreement, JetStream domain collisions

    Each seeded defect produces exactly one violation. Checks that depend on a
    reference only run once that reference resolves, so a missing entity is
    never reported twice.

PEER POLICY:
    - union: asymmetric peer/gateway declarations are warnings, the
      synthesizer uses the union of both directions
    - strict: asymmetric declarations are violations

The validator is a pure function over the topology and can be rerun freely.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum

from natsforge import graph
from natsforge.models import EdgeKind, HubNode, Topology, ValidationError

_LOGGER = logging.getLogger(__name__)

MAX_PORT = 65535

# names end up in file names: <node>.conf, accounts/<name>.jwt, <account>-<user>.creds
NAME = re.compile(r"[A-Za-z0-9_-][A-Za-z0-9_.-]*")


class PeerPolicy(str, Enum):
    UNION = "union"
    STRICT = "strict"


@dataclass(frozen=True)
class Violation:
    """a single broken invariant"""

    check: str
    subject: str
    message: str

    def __str__(self) -> str:
        return self.message


@dataclass
class ValidationReport:
    violations: list[Violation] = field(default_factory=list)
    warnings: list[Violation] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.violations

    def raise_for_violations(self):
        if self.violations:
            raise ValidationError(self.violations)


def subject_matches(pattern: str, subject: str) -> bool:
    """NATS subject matching, `*` matches one token and `>` the remainder"""
    ptoks = pattern.split(".")
    stoks = subject.split(".")
    for idx, ptok in enumerate(ptoks):
        if ptok == ">":
            return len(stoks) > idx
        if idx >= len(stoks):
            return False
        if ptok not in ("*", stoks[idx]):
            return False
    return len(ptoks) == len(stoks)


def _bad_subject(subject: str) -> bool:
    return not subject or any(c.isspace() for c in subject)


def _bad_name(name: str) -> bool:
    return NAME.fullmatch(name) is None or ".." in name


def _check_local(topology: Topology) -> list[Violation]:
    found: list[Violation] = []

    def add(subject: str, message: str):
        found.append(Violation("local", subject, message))

    def check_name(kind: str, name: str):
        if not name:
            add("", f"{kind} with empty name")
        elif _bad_name(name):
            add(name, f"{kind} name {name!r} may only use letters, digits and . _ -")

    for kind, name in topology.duplicates:
        add(name, f"duplicate {kind} name {name}")

    check_name("operator", topology.operator.name)

    for account in topology.accounts.values():
        check_name("account", account.name)
        for limit, value in account.limits.items():
            if value < 0:
                add(account.name, f"account {account.name} has negative {limit} {value}")
        for export in account.exports:
            if _bad_subject(export.subject):
                add(account.name, f"account {account.name} exports invalid subject {export.subject!r}")

    for user in topology.users.values():
        check_name("user", user.name)
        for subject in (*user.permissions.allow, *user.permissions.deny):
            if _bad_subject(subject):
                add(user.name, f"user {user.name} has invalid permission subject {subject!r}")

    for node in topology.nodes.values():
        check_name("node", node.name)
        ports = ["port"]
        if isinstance(node, HubNode):
            ports += ["cluster_port", "gateway_port", "leafnode_port"]
        for port in ports:
            value = getattr(node, port)
            if not 0 < value <= MAX_PORT:
                add(node.name, f"node {node.name} has invalid {port} {value}")
        if node.jetstream is not None:
            for limit in ("max_memory", "max_file"):
                value = getattr(node.jetstream, limit)
                if value is not None and value < 0:
                    add(node.name, f"node {node.name} has negative JetStream {limit} {value}")
    return found


def _check_references(topology: Topology) -> list[Violation]:
    found: list[Violation] = []

    def add(subject: str, message: str):
        found.append(Violation("reference", subject, message))

    if topology.system_account and topology.system_account not in topology.accounts:
        add(
            topology.system_account,
            f"system account {topology.system_account} does not exist",
        )

    for user in topology.users.values():
        if user.account not in topology.accounts:
            add(user.name, f"user {user.name} references missing account {user.account}")

    for account in topology.accounts.values():
        for imp in account.imports:
            if imp.account not in topology.accounts:
                add(
                    account.name,
                    f"account {account.name} imports {imp.subject} from missing account {imp.account}",
                )

    for leaf in topology.leaves():
        hub = topology.nodes.get(leaf.hub)
        if hub is None:
            add(leaf.name, f"leaf {leaf.name} references missing hub {leaf.hub}")
        elif not isinstance(hub, HubNode):
            add(leaf.name, f"leaf {leaf.name} references {leaf.hub} which is not a hub")
        if leaf.account not in topology.accounts:
            add(leaf.name, f"leaf {leaf.name} references missing account {leaf.account}")
        elif leaf.user is not None:
            user = topology.users.get(leaf.user)
            if user is None:
                add(leaf.name, f"leaf {leaf.name} references missing user {leaf.user}")
            elif user.account in topology.accounts and user.account != leaf.account:
                add(
                    leaf.name,
                    f"leaf {leaf.name} user {leaf.user} does not belong to account {leaf.account}",
                )

    for kind in (EdgeKind.CLUSTER, EdgeKind.GATEWAY):
        for edge in topology.edges_of(kind):
            label = f"{kind.value} edge {edge.source} -> {edge.target}"
            if edge.source == edge.target:
                add(edge.source, f"{label} connects a node to itself")
                continue
            bad = [
                n for n in (edge.source, edge.target)
                if not isinstance(topology.nodes.get(n), HubNode)
            ]
            if bad:
                add(edge.source, f"{label} has endpoint(s) that are not hubs: {', '.join(bad)}")
    return found


def _check_namespace(topology: Topology) -> list[Violation]:
    found: list[Violation] = []
    owners: dict[str, str] = {topology.operator.name: "operator"}
    for kind, names in (
        ("account", topology.accounts),
        ("user", topology.users),
        ("node", topology.nodes),
    ):
        for name in names:
            if name in owners:
                found.append(
                    Violation("cross", name, f"{kind} name {name} collides with {owners[name]} {name}")
                )
            else:
                owners[name] = kind
    return found


def _check_exports(topology: Topology) -> list[Violation]:
    found: list[Violation] = []
    for account in topology.accounts.values():
        for imp in account.imports:
            origin = topology.accounts.get(imp.account)
            if origin is None:
                continue
            if not any(subject_matches(e.subject, imp.subject) for e in origin.exports):
                found.append(
                    Violation(
                        "cross",
                        account.name,
                        f"account {account.name} imports {imp.subject} which {imp.account} does not export",
                    )
                )
    return found


def _check_symmetry(topology: Topology, policy: PeerPolicy) -> list[Violation]:
    found: list[Violation] = []
    for kind in (EdgeKind.CLUSTER, EdgeKind.GATEWAY):
        for source, target in graph.asymmetric_edges(topology, kind):
            found.append(
                Violation(
                    "cross",
                    source,
                    f"{kind.value} peer {source} lists {target} but {target} does not list {source}",
                )
            )
    if policy is PeerPolicy.UNION:
        for warning in found:
            _LOGGER.info("%s, using the union of both directions", warning)
    return found


def _check_clusters(topology: Topology) -> list[Violation]:
    found: list[Violation] = []

    def add(subject: str, message: str):
        found.append(Violation("cross", subject, message))

    component_of: dict[str, int] = {}
    seen_names: dict[str, str] = {}
    for idx, members in enumerate(graph.clusters(topology)):
        component_of.update((hub.name, idx) for hub in members)
        name = graph.cluster_name(members)
        for hub in members:
            if hub.cluster and hub.cluster != name:
                add(hub.name, f"hub {hub.name} declares cluster {hub.cluster} but its peers use {name}")
        if name in seen_names:
            add(
                members[0].name,
                f"cluster name {name} of hub {members[0].name} is already used by the cluster of {seen_names[name]}",
            )
        else:
            seen_names[name] = members[0].name
        domains = [h for h in members if h.jetstream is not None and h.jetstream.domain]
        for hub in domains[1:]:
            if hub.jetstream.domain != domains[0].jetstream.domain:
                add(
                    hub.name,
                    f"hub {hub.name} JetStream domain {hub.jetstream.domain} differs from "
                    f"cluster peer {domains[0].name} domain {domains[0].jetstream.domain}",
                )

    pairs: set[frozenset[str]] = set()
    for source, target in graph.valid_edges(topology, EdgeKind.GATEWAY):
        pair = frozenset((source, target))
        if pair in pairs:
            continue
        pairs.add(pair)
        if component_of[source] == component_of[target]:
            add(source, f"gateway {source} -> {target} joins hubs of the same cluster")
    return found


def _check_domains(topology: Topology) -> list[Violation]:
    found: list[Violation] = []
    leaf_domains: dict[str, str] = {}
    for leaf in topology.leaves():
        if leaf.jetstream is None or not leaf.jetstream.domain:
            continue
        domain = leaf.jetstream.domain
        hub = topology.nodes.get(leaf.hub)
        if (
            isinstance(hub, HubNode)
            and hub.jetstream is not None
            and hub.jetstream.domain == domain
        ):
            found.append(
                Violation(
                    "cross",
                    leaf.name,
                    f"leaf {leaf.name} JetStream domain {domain} collides with hub {hub.name}",
                )
            )
        if domain in leaf_domains:
            found.append(
                Violation(
                    "cross",
                    leaf.name,
                    f"leaf {leaf.name} JetStream domain {domain} is already used by leaf {leaf_domains[domain]}",
                )
            )
        else:
            leaf_domains[domain] = leaf.name
    return found


def validate(topology: Topology, policy: PeerPolicy = PeerPolicy.UNION) -> ValidationReport:
    """run all three passes and collect every violation found"""
    report = ValidationReport()
    report.violations.extend(_check_local(topology))
    report.violations.extend(_check_references(topology))
    report.violations.extend(_check_namespace(topology))
    report.violations.extend(_check_exports(topology))
    asymmetric = _check_symmetry(topology, policy)
    if policy is PeerPolicy.STRICT:
        report.violations.extend(asymmetric)
    else:
        report.warnings.extend(asymmetric)
    report.violations.extend(_check_clusters(topology))
    report.violations.extend(_check_domains(topology))
    _LOGGER.debug(
        "validation found %d violation(s), %d warning(s)",
        len(report.violations),
        len(report.warnings),
    )
    return report
