"""
File Chain:
Doc Version: v1.0.0
Date Modified: 2026-10-18

- Called by: orchestrator.py
- Reads from: templates/server.conf.jinja2, templates/resolver.conf.jinja2
- Calls into: graph.py (effective peers, cluster names)
- Purpose: Render nats-server configurations and the shared trust resolver

natsforge Config Synthesizer

PURPOSE:
    Turns every node of a validated topology into a ServerView with all
    addresses and credential references resolved, then renders it with
    Jinja2. Hubs are rendered before leaves, so a leaf finds the leafnode
    URL of its hub among the hubs already rendered.

    A missing credential or hub at this stage means an invalid topology got
    past validation and raises SynthesisInternalError.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Sequence

from jinja2 import (
    Environment,
    PackageLoader,
    Template,
    TemplateNotFound,
    select_autoescape,
)

from natsforge import graph
from natsforge.config import Config
from natsforge.credentials import CredentialSet
from natsforge.models import (
    EdgeKind,
    HubNode,
    JetStreamSettings,
    LeafNode,
    Node,
    SynthesisInternalError,
    TlsSettings,
    Topology,
)
from natsforge.signer import Credential

_LOGGER = logging.getLogger(__name__)

J2SUFFIX = ".jinja2"
SERVER_TEMPLATE = "server.conf"
RESOLVER_TEMPLATE = "resolver.conf"


@dataclass
class Remote:
    url: str
    account: str
    credentials: str | None = None


@dataclass
class GatewayRemote:
    name: str
    urls: list[str] = field(default_factory=list)


@dataclass
class ServerView:
    """everything a server template needs, fully resolved"""

    name: str
    role: str
    listen: str
    resolver_file: str
    cluster_name: str | None = None
    cluster_listen: str | None = None
    routes: list[str] = field(default_factory=list)
    gateway_listen: str | None = None
    gateways: list[GatewayRemote] = field(default_factory=list)
    leafnode_listen: str | None = None
    remotes: list[Remote] = field(default_factory=list)
    jetstream: JetStreamSettings | None = None
    tls: TlsSettings | None = None
    mappings: dict[str, str] = field(default_factory=dict)


def quote(value) -> str:
    """quote a value as a NATS configuration string"""
    return json.dumps(str(value))


def environment() -> Environment:
    env = Environment(
        loader=PackageLoader("natsforge"),
        autoescape=select_autoescape(),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )
    env.filters["quote"] = quote
    return env


def load_template(env: Environment, name: str) -> Template:
    try:
        return env.get_template(f"{name}{J2SUFFIX}")
    except TemplateNotFound as exc:
        raise SynthesisInternalError(f"template does not exist: {name}") from exc


def lookup(credentials: CredentialSet, name: str, kind: str) -> Credential:
    """resolve a credential, a miss means validation let a bad graph through"""
    try:
        credential = credentials[name]
    except KeyError:
        raise SynthesisInternalError(f"no credential issued for {kind} {name}") from None
    if credential.kind != kind:
        raise SynthesisInternalError(
            f"credential {name} is a {credential.kind}, expected {kind}"
        )
    return credential


def _jetstream(node: Node, cfg: Config) -> JetStreamSettings | None:
    if node.jetstream is None:
        return None
    settings = node.jetstream
    return JetStreamSettings(
        domain=settings.domain,
        store_dir=settings.store_dir or f"{cfg.jetstream_root}/{node.name}",
        max_memory=settings.max_memory,
        max_file=settings.max_file,
    )


def hub_view(topology: Topology, hub: HubNode, cluster_names: dict[str, str], cfg: Config) -> ServerView:
    view = ServerView(
        name=hub.name,
        role="hub",
        listen=hub.listen,
        resolver_file=cfg.resolver_file,
        leafnode_listen=f"{hub.host}:{hub.leafnode_port}",
        jetstream=_jetstream(hub, cfg),
        tls=hub.tls,
        mappings=dict(hub.mappings),
    )

    routes = graph.peers(topology, EdgeKind.CLUSTER, hub.name)
    if routes or hub.cluster:
        view.cluster_name = cluster_names[hub.name]
        view.cluster_listen = f"{hub.host}:{hub.cluster_port}"
        view.routes = [
            f"nats-route://{peer.host}:{peer.cluster_port}"
            for peer in (topology.nodes[name] for name in routes)
        ]

    gateways = graph.peers(topology, EdgeKind.GATEWAY, hub.name)
    if gateways:
        view.cluster_name = cluster_names[hub.name]
        view.gateway_listen = f"{hub.host}:{hub.gateway_port}"
        remotes: dict[str, GatewayRemote] = {}
        for name in gateways:
            peer = topology.nodes[name]
            remote = remotes.setdefault(cluster_names[name], GatewayRemote(cluster_names[name]))
            remote.urls.append(f"nats://{peer.host}:{peer.gateway_port}")
        view.gateways = list(remotes.values())
    return view


def leaf_view(
    leaf: LeafNode,
    hub: str | None,
    hub_urls: dict[str, str],
    credentials: CredentialSet,
    cfg: Config,
) -> ServerView:
    if hub is None:
        raise SynthesisInternalError(f"leaf {leaf.name} has no leaf edge to a hub")
    try:
        url = hub_urls[hub]
    except KeyError:
        raise SynthesisInternalError(
            f"hub {hub} of leaf {leaf.name} has not been resolved"
        ) from None
    account = lookup(credentials, leaf.account, "account")
    creds = None
    if leaf.user is not None:
        user = lookup(credentials, leaf.user, "user")
        if user.creds_path is None:
            raise SynthesisInternalError(f"user {leaf.user} has no credentials file")
        creds = str(user.creds_path)
    return ServerView(
        name=leaf.name,
        role="leaf",
        listen=leaf.listen,
        resolver_file=cfg.resolver_file,
        remotes=[Remote(url=url, account=account.subject, credentials=creds)],
        jetstream=_jetstream(leaf, cfg),
        tls=leaf.tls,
        mappings=dict(leaf.mappings),
    )


def synthesize(
    topology: Topology,
    credentials: CredentialSet,
    order: Sequence[Node],
    cfg: Config,
) -> dict[str, str]:
    """render one server configuration per node, in `order`"""
    template = load_template(environment(), SERVER_TEMPLATE)
    cluster_names = graph.cluster_names(topology)
    leaf_hubs = graph.leaf_hubs(topology)
    hub_urls: dict[str, str] = {}
    configs: dict[str, str] = {}
    for node in order:
        if isinstance(node, HubNode):
            view = hub_view(topology, node, cluster_names, cfg)
            hub_urls[node.name] = node.leafnode_url
        else:
            view = leaf_view(node, leaf_hubs.get(node.name), hub_urls, credentials, cfg)
        configs[node.name] = template.render(node=view)
        _LOGGER.info("Config created for %s %s", view.role, node.name)
    return configs


def render_resolver(topology: Topology, credentials: CredentialSet, cfg: Config) -> str:
    """render the trust resolver shared by every node"""
    operator = lookup(credentials, topology.operator.name, "operator")
    accounts = [lookup(credentials, name, "account") for name in topology.accounts]
    system_account = None
    if topology.system_account:
        system_account = lookup(credentials, topology.system_account, "account")
    template = load_template(environment(), RESOLVER_TEMPLATE)
    return template.render(
        operator=operator,
        system_account=system_account,
        accounts=accounts,
        memory=cfg.memory_resolver,
        url=cfg.resolver,
    )
