"""
File Chain:
Doc Version: v1.0.0
Date Modified: 2026-10-18

- Called by: validate.py, synth.py
- Purpose: NetworkX views over the cluster and gateway edges of a topology

The topology stores edges as plain name pairs. These helpers turn them into
networkx graphs on demand; nothing here keeps references between nodes.
Only edges whose endpoints are two distinct hub nodes are considered, the
validator reports the others.
"""

import networkx as nx

from natsforge.models import EdgeKind, HubNode, Topology


def valid_edges(topology: Topology, kind: EdgeKind) -> list[tuple[str, str]]:
    """declared edges of `kind` joining two distinct hubs"""
    hubs = {h.name for h in topology.hubs()}
    return [
        (e.source, e.target)
        for e in topology.edges_of(kind)
        if e.source != e.target and e.source in hubs and e.target in hubs
    ]


def declared_graph(topology: Topology, kind: EdgeKind) -> nx.DiGraph:
    """the edges exactly as declared, one direction per declaration"""
    graph = nx.DiGraph()
    graph.add_nodes_from(h.name for h in topology.hubs())
    graph.add_edges_from(valid_edges(topology, kind))
    return graph


def effective_graph(topology: Topology, kind: EdgeKind) -> nx.Graph:
    """the union of both declaration directions"""
    return declared_graph(topology, kind).to_undirected()


def asymmetric_edges(topology: Topology, kind: EdgeKind) -> list[tuple[str, str]]:
    """declarations whose reverse direction is missing"""
    graph = declared_graph(topology, kind)
    return [(u, v) for u, v in valid_edges(topology, kind) if not graph.has_edge(v, u)]


def peers(topology: Topology, kind: EdgeKind, name: str) -> list[str]:
    """effective peers of hub `name` in hub insertion order"""
    graph = effective_graph(topology, kind)
    if name not in graph:
        return []
    neighbors = set(graph.neighbors(name))
    return [h.name for h in topology.hubs() if h.name in neighbors]


def clusters(topology: Topology) -> list[list[HubNode]]:
    """hubs grouped by cluster edges, in hub insertion order"""
    graph = effective_graph(topology, EdgeKind.CLUSTER)
    groups: list[list[HubNode]] = []
    seen: set[str] = set()
    for hub in topology.hubs():
        if hub.name in seen:
            continue
        members = nx.node_connected_component(graph, hub.name)
        seen.update(members)
        groups.append([h for h in topology.hubs() if h.name in members])
    return groups


def cluster_name(members: list[HubNode]) -> str:
    """first explicit cluster name of the members, else the first member's name"""
    for hub in members:
        if hub.cluster:
            return hub.cluster
    return members[0].name


def cluster_names(topology: Topology) -> dict[str, str]:
    """effective cluster name of every hub"""
    names: dict[str, str] = {}
    for members in clusters(topology):
        name = cluster_name(members)
        names.update((hub.name, name) for hub in members)
    return names


def leaf_hubs(topology: Topology) -> dict[str, str]:
    """leaf name -> the hub it dials, read from the leaf edges"""
    return {e.source: e.target for e in topology.edges_of(EdgeKind.LEAF)}
