"""
Build a directed graph from a Flow for ordering, metrics, and pattern analysis.
Nodes = block ids in flow order. Edges = connections whose endpoints both exist;
dangling connections are left to the validator.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field

from blockflow.graph.flow import Flow


@dataclass
class DirectedGraph:
    """
    Adjacency-list directed graph. Node order is insertion order; parallel
    edges are kept so that degrees match the connection count.
    """

    _successors: dict[str, list[str]] = field(default_factory=dict)
    _predecessors: dict[str, list[str]] = field(default_factory=dict)

    def nodes(self) -> list[str]:
        """All node ids, in insertion order."""
        return list(self._successors.keys())

    def successors(self, node: str) -> list[str]:
        """List of targets of edges from node (order preserved)."""
        return list(self._successors.get(node, []))

    def predecessors(self, node: str) -> list[str]:
        """List of sources of edges into node."""
        return list(self._predecessors.get(node, []))

    def out_degree(self, node: str) -> int:
        return len(self._successors.get(node, []))

    def in_degree(self, node: str) -> int:
        return len(self._predecessors.get(node, []))

    def edge_count(self) -> int:
        return sum(len(succs) for succs in self._successors.values())

    def add_node(self, node: str) -> None:
        self._successors.setdefault(node, [])
        self._predecessors.setdefault(node, [])

    def add_edge(self, source: str, target: str) -> None:
        self.add_node(source)
        self.add_node(target)
        self._successors[source].append(target)
        self._predecessors[target].append(source)

    def roots(self) -> list[str]:
        """Nodes with no incoming edge, in insertion order."""
        return [n for n in self.nodes() if not self._predecessors[n]]

    def reachable_from(self, start: str) -> set[str]:
        """BFS from start; start itself is included."""
        q: deque[str] = deque([start])
        seen: set[str] = set()
        while q:
            n = q.popleft()
            if n in seen:
                continue
            seen.add(n)
            for succ in self._successors.get(n, []):
                q.append(succ)
        return seen

    def connected_components(self) -> list[set[str]]:
        """Weakly connected components (edge direction ignored)."""
        seen: set[str] = set()
        components: list[set[str]] = []
        for start in self.nodes():
            if start in seen:
                continue
            component: set[str] = set()
            q: deque[str] = deque([start])
            while q:
                n = q.popleft()
                if n in component:
                    continue
                component.add(n)
                q.extend(self._successors[n])
                q.extend(self._predecessors[n])
            seen |= component
            components.append(component)
        return components

    def strongly_connected_components(self) -> list[set[str]]:
        """Tarjan's algorithm with an explicit (node, child_idx) stack."""
        counter = 0
        stack: list[str] = []
        lowlink: dict[str, int] = {}
        index: dict[str, int] = {}
        on_stack: set[str] = set()
        sccs: list[set[str]] = []

        for root in self.nodes():
            if root in index:
                continue
            index[root] = lowlink[root] = counter
            counter += 1
            stack.append(root)
            on_stack.add(root)
            work: list[tuple[str, int]] = [(root, 0)]
            while work:
                v, child_idx = work[-1]
                succs = self._successors[v]
                if child_idx < len(succs):
                    work[-1] = (v, child_idx + 1)
                    w = succs[child_idx]
                    if w not in index:
                        index[w] = lowlink[w] = counter
                        counter += 1
                        stack.append(w)
                        on_stack.add(w)
                        work.append((w, 0))
                    elif w in on_stack:
                        lowlink[v] = min(lowlink[v], index[w])
                    continue

                work.pop()
                if work:
                    parent = work[-1][0]
                    lowlink[parent] = min(lowlink[parent], lowlink[v])
                if lowlink[v] == index[v]:
                    component: set[str] = set()
                    while True:
                        w = stack.pop()
                        on_stack.discard(w)
                        component.add(w)
                        if w == v:
                            break
                    sccs.append(component)

        return sccs

    def cyclic_components(self) -> list[set[str]]:
        """SCCs that are real cycles: more than one node, or a single node with a self-loop."""
        return [
            scc
            for scc in self.strongly_connected_components()
            if len(scc) > 1 or next(iter(scc)) in self._successors[next(iter(scc))]
        ]


def build_digraph(flow: Flow) -> DirectedGraph:
    """
    Build a DirectedGraph from a Flow.
    Every block becomes a node (including isolated ones); each connection whose
    source and target both exist becomes an edge.
    """
    dg = DirectedGraph()
    for block in flow.blocks:
        dg.add_node(block.id)

    known = set(dg.nodes())
    for conn in flow.connections:
        if conn.source.block_id in known and conn.target.block_id in known:
            dg.add_edge(conn.source.block_id, conn.target.block_id)

    return dg
