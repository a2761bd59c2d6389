"""Build directed dependency graph from declared resources or recorded state."""

import networkx as nx
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple
from ..model.resources import ResourceSpec
from ..state.models import ResourceState
from ..utils.errors import CycleError
from ..utils.logging import get_logger

logger = get_logger("graph.dependency_graph")


class DependencyGraph:
    """Directed dependency graph: nodes=resource addresses, edges=resource -> dependency."""

    def __init__(self):
        self.graph = nx.DiGraph()
        self._position: Dict[str, int] = {}

    def add_resource(self, address: str, dependencies: Iterable[str]) -> None:
        """Add a resource and its dependency edges (targets may be added later)."""
        if address not in self._position:
            self._position[address] = len(self._position)
        self.graph.add_node(address)
        for dep in dependencies:
            self.graph.add_edge(address, dep)
            logger.debug(f"Added dependency edge: {address} -> {dep}")

    def build_from_specs(self, specs: Sequence[ResourceSpec]) -> None:
        """Build graph from declared resources; declaration order is kept for tie-breaking."""
        for spec in specs:
            self.add_resource(spec.address, spec.dependencies)
        logger.info(f"Built dependency graph with {self.graph.number_of_nodes()} nodes and {self.graph.number_of_edges()} edges")

    def build_from_states(self, states: Sequence[ResourceState]) -> None:
        """Build graph from recorded state; dependencies on unknown addresses are dropped."""
        known = {state.address for state in states}
        for state in states:
            self.add_resource(state.address, [d for d in state.dependencies if d in known])

    def _sort_key(self, address: str) -> Tuple[int, str]:
        return (self._position.get(address, len(self._position)), address)

    def find_cycle(self) -> Optional[List[str]]:
        """Return the addresses on one cycle, or None when the graph is acyclic."""
        try:
            edges = nx.find_cycle(self.graph)
        except nx.NetworkXNoCycle:
            return None
        cycle = [source for source, _ in edges]
        cycle.append(edges[-1][1])
        return cycle

    def topological_order(self) -> List[str]:
        """
        Depth-first topological sort: every dependency precedes its dependents.

        Raises:
            CycleError: If the graph is cyclic
        """
        cycle = self.find_cycle()
        if cycle:
            raise CycleError(cycle)

        order: List[str] = []
        visited: Set[str] = set()

        def visit(address: str) -> None:
            if address in visited:
                return
            visited.add(address)
            for dep in sorted(self.graph.successors(address), key=self._sort_key):
                visit(dep)
            order.append(address)

        for address in sorted(self.graph.nodes, key=self._sort_key):
            visit(address)
        return order

    def reverse_order(self) -> List[str]:
        """Teardown order: dependents before their dependencies."""
        return list(reversed(self.topological_order()))

    def get_downstream_resources(self, address: str) -> Set[str]:
        """Get all resources that depend on the given resource, transitively."""
        if address not in self.graph:
            return set()
        return set(nx.ancestors(self.graph, address))

    def get_upstream_resources(self, address: str) -> Set[str]:
        """Get all resources the given resource depends on, transitively."""
        if address not in self.graph:
            return set()
        return set(nx.descendants(self.graph, address))


def build(specs: Sequence[ResourceSpec]) -> List[ResourceSpec]:
    """
    Order declared resources so every reference target precedes its referrer.

    Args:
        specs: Declared resources in declaration order

    Returns:
        Specs in topological order

    Raises:
        CycleError: If the reference graph is cyclic
    """
    graph = DependencyGraph()
    graph.build_from_specs(specs)
    by_address = {spec.address: spec for spec in specs}
    return [by_address[address] for address in graph.topological_order() if address in by_address]
