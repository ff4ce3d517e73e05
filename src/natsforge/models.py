"""
File Chain:
Doc Version: v1.0.0
Date Modified: 2026-10-18

- Called by: loader.py, validate.py, ordering.py, credentials.py, synth.py, orchestrator.py
- Purpose: Core data structures for a NATS fleet topology and the error hierarchy

natsforge Data Models - Topology Aggregate, Entities and Errors

PURPOSE:
    Defines the in-memory representation of a declared NATS fleet: the operator,
    accounts, users, hub and leaf nodes, and the connection edges between nodes.
    Also defines the tagged issuance steps used by the dependency orderer and
    every error raised by natsforge.

WHO READS ME:
    - loader.py: builds a Topology from a declarative document
    - validate.py: checks the invariants of an assembled Topology
    - ordering.py: linearizes accounts, users and nodes
    - credentials.py: turns IssuanceSteps into signer calls
    - synth.py: renders nodes into server configurations

WHO I READ:
    - None (leaf module, no internal dependencies)

KEY EXPORTS:
    - NatsforgeError: Base exception class for all natsforge errors
    - Operator, Account, User, HubNode, LeafNode: declared entities
    - Edge, EdgeKind: connection edges, stored as plain name pairs. Each
      leaf node owns exactly one leaf edge to its hub, which the config
      synthesizer resolves the hub address from
    - Topology: aggregate root with fail-fast mutation operations
    - OperatorStep, AccountStep, UserStep: issuance steps

NAMESPACE:
    The operator, account, user and node names share one namespace. A
    CredentialSet is keyed by entity name and node configs address accounts
    and users by name, so two entities of any kind may never share a name.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Iterator, Union


class NatsforgeError(Exception):
    """Base class for all errors raised by natsforge"""


class TopologyError(NatsforgeError):
    """a mutation of the topology was rejected, nothing was changed"""


class StructuralError(NatsforgeError):
    """the declarative input document is malformed"""


class ValidationError(NatsforgeError):
    """one or more topology invariants are violated"""

    def __init__(self, violations):
        self.violations = list(violations)
        super().__init__(
            f"{len(self.violations)} topology violation(s): "
            + "; ".join(str(v) for v in self.violations)
        )


class SynthesisInternalError(NatsforgeError):
    """a reference expected by the config synthesizer is missing"""


class ExternalProcessError(NatsforgeError):
    """an external collaborator process could not be invoked"""


class ProcessUnavailableError(ExternalProcessError):
    """the signer process is missing, timed out or crashed, retrying may help"""


class DuplicateEntityError(NatsforgeError):
    """the signer already holds an entity with this name"""


class SignerRejectedError(NatsforgeError):
    """the signer ran but refused the request"""


class IssuanceError(NatsforgeError):
    """an issuance step failed, the remaining plan was not executed

    `position` is the 1-based index of the failed step in the plan and
    `completed` holds the credentials issued before it.
    """

    def __init__(self, step, position: int, completed, cause: Exception | None = None):
        self.step = step
        self.position = position
        self.completed = completed
        self.cause = cause
        reason = f": {cause}" if cause is not None else ""
        super().__init__(
            f"issuance step {position} ({step.describe()}) failed after "
            f"{len(completed)} completed step(s){reason}"
        )


class DuplicateIssuanceError(IssuanceError):
    """the signer already holds the entity, clean its store before rerunning"""


class IssuanceCancelledError(IssuanceError):
    """the run was cancelled before this step was issued"""


@dataclass
class Limits:
    """account resource limits, None means the signer default (unlimited)"""

    max_connections: int | None = None
    max_data: int | None = None
    max_streams: int | None = None
    max_payload: int | None = None

    def items(self) -> Iterator[tuple[str, int]]:
        for name in ("max_connections", "max_data", "max_streams", "max_payload"):
            value = getattr(self, name)
            if value is not None:
                yield name, value


@dataclass
class Export:
    """a subject exported by an account, as a stream unless `service` is set"""

    subject: str
    service: bool = False


@dataclass
class Import:
    """a subject imported from the account named `account`"""

    subject: str
    account: str


@dataclass
class Permissions:
    """ordered allow and deny subject patterns of a user"""

    allow: list[str] = field(default_factory=list)
    deny: list[str] = field(default_factory=list)


@dataclass
class Operator:
    """root of trust, exactly one per topology"""

    name: str
    reuse_existing: bool = False


@dataclass
class Account:
    """a trust domain under the operator"""

    name: str
    jetstream: bool = False
    limits: Limits = field(default_factory=Limits)
    exports: list[Export] = field(default_factory=list)
    imports: list[Import] = field(default_factory=list)


@dataclass
class User:
    """a credentialed principal, `account` is a name lookup, not a link"""

    name: str
    account: str
    permissions: Permissions = field(default_factory=Permissions)
    expiry: str | None = None


@dataclass
class JetStreamSettings:
    """JetStream settings of a node, the node enables JetStream when present"""

    domain: str | None = None
    store_dir: str | None = None
    max_memory: int | None = None
    max_file: int | None = None


@dataclass
class TlsSettings:
    cert_file: str
    key_file: str
    ca_file: str | None = None


@dataclass
class HubNode:
    """a broker accepting leaf connections, optionally clustered and gatewayed"""

    name: str
    host: str = "127.0.0.1"
    port: int = 4222
    cluster: str | None = None
    cluster_port: int = 6222
    gateway_port: int = 7222
    leafnode_port: int = 7422
    jetstream: JetStreamSettings | None = None
    tls: TlsSettings | None = None
    mappings: dict[str, str] = field(default_factory=dict)

    @property
    def listen(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def leafnode_url(self) -> str:
        """the address leaf nodes dial to reach this hub"""
        return f"nats-leaf://{self.host}:{self.leafnode_port}"


@dataclass
class LeafNode:
    """a broker connecting outward to exactly one hub"""

    name: str
    hub: str
    account: str
    user: str | None = None
    host: str = "127.0.0.1"
    port: int = 4222
    jetstream: JetStreamSettings | None = None
    tls: TlsSettings | None = None
    mappings: dict[str, str] = field(default_factory=dict)

    @property
    def listen(self) -> str:
        return f"{self.host}:{self.port}"


Node = Union[HubNode, LeafNode]


class EdgeKind(str, Enum):
    CLUSTER = "cluster"
    GATEWAY = "gateway"
    LEAF = "leaf"


@dataclass(frozen=True)
class Edge:
    """a directed declaration `source` -> `target`; symmetry is checked later"""

    kind: EdgeKind
    source: str
    target: str


@dataclass(frozen=True)
class OperatorStep:
    name: str

    def describe(self) -> str:
        return f"operator {self.name}"


@dataclass(frozen=True)
class AccountStep:
    name: str

    def describe(self) -> str:
        return f"account {self.name}"


@dataclass(frozen=True)
class UserStep:
    name: str
    account: str

    def describe(self) -> str:
        return f"user {self.name} of account {self.account}"


IssuanceStep = Union[OperatorStep, AccountStep, UserStep]


class Topology:
    """aggregate root of a declared fleet

    Mappings keep insertion order, which is the order of generated output.
    Mutations fail fast with TopologyError; whole-graph invariants are left to
    the validator.
    """

    def __init__(self, operator: Operator, system_account: str | None = None):
        self.operator = operator
        self.system_account = system_account
        self.accounts: dict[str, Account] = {}
        self.users: dict[str, User] = {}
        self.nodes: dict[str, Node] = {}
        self.edges: set[Edge] = set()
        # (kind, name) of declarations dropped by assemble() as duplicates
        self.duplicates: list[tuple[str, str]] = []

    @classmethod
    def assemble(
        cls,
        operator: Operator,
        accounts: Iterable[Account] = (),
        users: Iterable[User] = (),
        nodes: Iterable[Node] = (),
        edges: Iterable[Edge] = (),
        system_account: str | None = None,
    ) -> "Topology":
        """build a topology from declarations without failing fast

        The first declaration of a name wins, later ones are recorded in
        `duplicates`. Unresolved references are kept as declared.
        """
        topology = cls(operator, system_account=system_account)
        for kind, items, mapping in (
            ("account", accounts, topology.accounts),
            ("user", users, topology.users),
            ("node", nodes, topology.nodes),
        ):
            for item in items:
                if item.name in mapping:
                    topology.duplicates.append((kind, item.name))
                else:
                    mapping[item.name] = item
        for node in topology.leaves():
            topology.edges.add(Edge(EdgeKind.LEAF, node.name, node.hub))
        topology.edges.update(edges)
        return topology

    def kind_of(self, name: str) -> str | None:
        """return which kind of entity owns `name`, if any"""
        if name == self.operator.name:
            return "operator"
        if name in self.accounts:
            return "account"
        if name in self.users:
            return "user"
        if name in self.nodes:
            return "node"
        return None

    def _claim(self, kind: str, name: str):
        if not name:
            raise TopologyError(f"{kind} name must not be empty")
        owner = self.kind_of(name)
        if owner is not None:
            raise TopologyError(f"cannot add {kind} {name}: name already used by {owner}")

    def add_account(self, account: Account) -> Account:
        self._claim("account", account.name)
        self.accounts[account.name] = account
        return account

    def remove_account(self, name: str) -> Account:
        """remove an account together with its users"""
        try:
            account = self.accounts.pop(name)
        except KeyError:
            raise TopologyError(f"no such account: {name}") from None
        for user in list(self.account_users(name)):
            del self.users[user.name]
        return account

    def add_user(self, user: User) -> User:
        if user.account not in self.accounts:
            raise TopologyError(
                f"cannot add user {user.name}: no such account {user.account}"
            )
        self._claim("user", user.name)
        self.users[user.name] = user
        return user

    def remove_user(self, name: str) -> User:
        try:
            return self.users.pop(name)
        except KeyError:
            raise TopologyError(f"no such user: {name}") from None

    def add_node(self, node: Node) -> Node:
        self._claim("node", node.name)
        self.nodes[node.name] = node
        if isinstance(node, LeafNode):
            self.edges.add(Edge(EdgeKind.LEAF, node.name, node.hub))
        return node

    def remove_node(self, name: str) -> Node:
        """remove a node and every edge touching it"""
        try:
            node = self.nodes.pop(name)
        except KeyError:
            raise TopologyError(f"no such node: {name}") from None
        self.edges = {e for e in self.edges if name not in (e.source, e.target)}
        return node

    def add_edge(self, kind: EdgeKind | str, source: str, target: str) -> Edge:
        """add a cluster or gateway edge, leaf edges come from add_node"""
        edge = Edge(EdgeKind(kind), source, target)
        if edge.kind is EdgeKind.LEAF:
            raise TopologyError(
                f"cannot add leaf edge {source} -> {target}: it follows the hub of the leaf node"
            )
        for name in (source, target):
            if name not in self.nodes:
                raise TopologyError(f"cannot add {edge.kind.value} edge: no such node {name}")
        self.edges.add(edge)
        return edge

    def account_users(self, account: str) -> Iterator[User]:
        return (u for u in self.users.values() if u.account == account)

    def hubs(self) -> list[HubNode]:
        return [n for n in self.nodes.values() if isinstance(n, HubNode)]

    def leaves(self) -> list[LeafNode]:
        return [n for n in self.nodes.values() if isinstance(n, LeafNode)]

    def edges_of(self, kind: EdgeKind) -> list[Edge]:
        """edges of one kind in a stable order"""
        return sorted(
            (e for e in self.edges if e.kind == kind), key=lambda e: (e.source, e.target)
        )
