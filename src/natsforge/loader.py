"""
File Chain:
Doc Version: v1.0.0
Date Modified: 2026-10-18

- Called by: main.py
- Reads from: topology documents (TOML or JSON)
- Purpose: Deserialize a declarative topology document into a Topology

natsforge Topology Loader

PURPOSE:
    Reads the declarative description of a fleet and assembles the Topology
    model. Malformed documents raise StructuralError. Semantic problems
    (unknown accounts, duplicate names, domain collisions) are NOT checked
    here: the topology is assembled as declared so the validator can report
    every problem in one pass.

DEPENDENCIES:
    - serde: document dataclasses (@deserialize)
    - serde.toml / serde.json: from_toml(), from_json()

FILE FORMAT:
    topology.toml example:
    ```toml
    system_account = "SYS"

    [operator]
    name = "O"

    [[accounts]]
    name = "SYS"

    [[accounts]]
    name = "svc"
    jetstream = true
    max_connections = 100

    [[accounts.users]]
    name = "worker"
    allow = ["svc.>"]

    [[hubs]]
    name = "hub-1"
    host = "10.0.0.1"
    peers = ["hub-2"]

    [hubs.jetstream]
    domain = "hub"

    [[leaves]]
    name = "leaf-1"
    hub = "hub-1"
    account = "svc"
    user = "worker"
    ```

    Users may be nested under their account or declared in a top level
    [[users]] list with an explicit `account`.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from serde import deserialize, SerdeError
from serde.json import from_json
from serde.toml import from_toml

from natsforge.models import (
    Account,
    Edge,
    EdgeKind,
    Export,
    HubNode,
    Import,
    JetStreamSettings,
    LeafNode,
    Limits,
    Operator,
    Permissions,
    StructuralError,
    TlsSettings,
    Topology,
    User,
)

_LOGGER = logging.getLogger(__name__)


@deserialize
@dataclass
class OperatorDoc:
    name: str
    reuse_existing: bool = False


@deserialize
@dataclass
class ExportDoc:
    subject: str
    service: bool = False


@deserialize
@dataclass
class ImportDoc:
    subject: str
    account: str


@deserialize
@dataclass
class UserDoc:
    name: str
    account: Optional[str] = None
    allow: list[str] = field(default_factory=list)
    deny: list[str] = field(default_factory=list)
    expiry: Optional[str] = None


@deserialize
@dataclass
class AccountDoc:
    name: str
    jetstream: bool = False
    max_connections: Optional[int] = None
    max_data: Optional[int] = None
    max_streams: Optional[int] = None
    max_payload: Optional[int] = None
    exports: list[ExportDoc] = field(default_factory=list)
    imports: list[ImportDoc] = field(default_factory=list)
    users: list[UserDoc] = field(default_factory=list)


@deserialize
@dataclass
class JetStreamDoc:
    domain: Optional[str] = None
    store_dir: Optional[str] = None
    max_memory: Optional[int] = None
    max_file: Optional[int] = None


@deserialize
@dataclass
class TlsDoc:
    cert_file: str
    key_file: str
    ca_file: Optional[str] = None


@deserialize
@dataclass
class HubDoc:
    name: str
    host: str = "127.0.0.1"
    port: int = 4222
    cluster: Optional[str] = None
    cluster_port: int = 6222
    gateway_port: int = 7222
    leafnode_port: int = 7422
    peers: list[str] = field(default_factory=list)
    gateways: list[str] = field(default_factory=list)
    jetstream: Optional[JetStreamDoc] = None
    tls: Optional[TlsDoc] = None
    mappings: dict[str, str] = field(default_factory=dict)


@deserialize
@dataclass
class LeafDoc:
    name: str
    hub: str
    account: str
    user: Optional[str] = None
    host: str = "127.0.0.1"
    port: int = 4222
    jetstream: Optional[JetStreamDoc] = None
    tls: Optional[TlsDoc] = None
    mappings: dict[str, str] = field(default_factory=dict)


@deserialize
@dataclass
class TopologyDoc:
    operator: OperatorDoc
    system_account: Optional[str] = None
    accounts: list[AccountDoc] = field(default_factory=list)
    users: list[UserDoc] = field(default_factory=list)
    hubs: list[HubDoc] = field(default_factory=list)
    leaves: list[LeafDoc] = field(default_factory=list)


def _jetstream(doc: Optional[JetStreamDoc]) -> JetStreamSettings | None:
    if doc is None:
        return None
    return JetStreamSettings(doc.domain, doc.store_dir, doc.max_memory, doc.max_file)


def _tls(doc: Optional[TlsDoc]) -> TlsSettings | None:
    if doc is None:
        return None
    return TlsSettings(doc.cert_file, doc.key_file, doc.ca_file)


def _user(doc: UserDoc, account: str) -> User:
    return User(
        name=doc.name,
        account=account,
        permissions=Permissions(allow=list(doc.allow), deny=list(doc.deny)),
        expiry=doc.expiry,
    )


def from_document(doc: TopologyDoc) -> Topology:
    """assemble the topology model from a deserialized document"""
    accounts: list[Account] = []
    users: list[User] = []
    for adoc in doc.accounts:
        accounts.append(
            Account(
                name=adoc.name,
                jetstream=adoc.jetstream,
                limits=Limits(
                    max_connections=adoc.max_connections,
                    max_data=adoc.max_data,
                    max_streams=adoc.max_streams,
                    max_payload=adoc.max_payload,
                ),
                exports=[Export(e.subject, e.service) for e in adoc.exports],
                imports=[Import(i.subject, i.account) for i in adoc.imports],
            )
        )
        for udoc in adoc.users:
            if udoc.account not in (None, adoc.name):
                raise StructuralError(
                    f"user {udoc.name} is nested under account {adoc.name} "
                    f"but declares account {udoc.account}"
                )
            users.append(_user(udoc, adoc.name))
    for udoc in doc.users:
        if not udoc.account:
            raise StructuralError(f"top level user {udoc.name} must declare an account")
        users.append(_user(udoc, udoc.account))

    nodes: list[HubNode | LeafNode] = []
    edges: list[Edge] = []
    for hdoc in doc.hubs:
        nodes.append(
            HubNode(
                name=hdoc.name,
                host=hdoc.host,
                port=hdoc.port,
                cluster=hdoc.cluster,
                cluster_port=hdoc.cluster_port,
                gateway_port=hdoc.gateway_port,
                leafnode_port=hdoc.leafnode_port,
                jetstream=_jetstream(hdoc.jetstream),
                tls=_tls(hdoc.tls),
                mappings=dict(hdoc.mappings),
            )
        )
        edges.extend(Edge(EdgeKind.CLUSTER, hdoc.name, peer) for peer in hdoc.peers)
        edges.extend(Edge(EdgeKind.GATEWAY, hdoc.name, peer) for peer in hdoc.gateways)
    for ldoc in doc.leaves:
        nodes.append(
            LeafNode(
                name=ldoc.name,
                hub=ldoc.hub,
                account=ldoc.account,
                user=ldoc.user,
                host=ldoc.host,
                port=ldoc.port,
                jetstream=_jetstream(ldoc.jetstream),
                tls=_tls(ldoc.tls),
                mappings=dict(ldoc.mappings),
            )
        )

    return Topology.assemble(
        Operator(doc.operator.name, doc.operator.reuse_existing),
        accounts=accounts,
        users=users,
        nodes=nodes,
        edges=edges,
        system_account=doc.system_account,
    )


def parse_topology(text: str, fmt: str = "toml") -> Topology:
    """parse a topology document given as text, `fmt` is toml or json"""
    try:
        if fmt == "json":
            doc = from_json(TopologyDoc, text)
        elif fmt == "toml":
            doc = from_toml(TopologyDoc, text)
        else:
            raise StructuralError(f"unsupported topology format: {fmt}")
    except (SerdeError, ValueError, TypeError, KeyError) as exc:
        raise StructuralError(f"malformed topology document: {exc}") from exc
    return from_document(doc)


def load_topology(filename: str | Path) -> Topology:
    """load a topology document, the format follows the file suffix"""
    path = Path(filename)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise StructuralError(f"cannot read topology {path}: {exc}") from exc
    fmt = "json" if path.suffix.lower() == ".json" else "toml"
    topology = parse_topology(text, fmt)
    _LOGGER.info(
        "Topology loaded from %s: %d account(s), %d user(s), %d node(s)",
        path,
        len(topology.accounts),
        len(topology.users),
        len(topology.nodes),
    )
    return topology
