"""
Stage graph: explicit dependencies between provisioning stages.

Edges are inferred from the names each stage produces and consumes, so the
ordering the pipeline relies on can be checked instead of trusted.
"""

from typing import Dict, List, Optional, Any, Iterable
from dataclasses import dataclass, field
from collections import defaultdict, deque


class StageGraphError(ValueError):
    """Raised when stage dependencies are inconsistent."""
    pass


@dataclass
class StageNode:
    """Represents a stage in the graph."""

    name: str
    produces: List[str] = field(default_factory=list)
    consumes: List[str] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)
    dependents: List[str] = field(default_factory=list)


class StageGraph:
    """
    Directed acyclic graph of stage dependencies.

    Stage B depends on stage A when B consumes a name that A produces.

    Provides:
    1. Edge inference from produces/consumes
    2. Topological sorting
    3. Cycle detection
    4. Verification of a fixed call order
    """

    def __init__(self):
        self.nodes: Dict[str, StageNode] = {}
        self.producers: Dict[str, str] = {}
        self._adjacency_list: Dict[str, List[str]] = defaultdict(list)

    @classmethod
    def build(cls, stages: Iterable[Any]) -> "StageGraph":
        """
        Build the graph from objects exposing ``name``, ``produces`` and
        ``consumes``.

        Raises:
            StageGraphError: On duplicate stage names, a name produced by two
                stages, or a consumed name that no stage produces
        """
        graph = cls()
        stages = list(stages)

        for stage in stages:
            graph.add_node(stage.name, produces=stage.produces, consumes=stage.consumes)

        for stage in stages:
            for consumed in stage.consumes:
                producer = graph.producers.get(consumed)
                if producer is None:
                    raise StageGraphError(
                        f"Stage '{stage.name}' consumes '{consumed}', "
                        f"which no stage produces"
                    )
                graph.add_edge(producer, stage.name)

        return graph

    def add_node(
        self,
        name: str,
        produces: Iterable[str] = (),
        consumes: Iterable[str] = (),
    ) -> None:
        """Add a stage to the graph."""
        if name in self.nodes:
            raise StageGraphError(f"Stage '{name}' is defined more than once")
        node = StageNode(name=name, produces=list(produces), consumes=list(consumes))
        for produced in node.produces:
            if produced in self.producers:
                raise StageGraphError(
                    f"'{produced}' is produced by multiple stages: "
                    f"'{self.producers[produced]}' and '{name}'"
                )
            self.producers[produced] = name
        self.nodes[name] = node

    def add_edge(self, from_node: str, to_node: str) -> None:
        """
        Add a directed edge.

        Args:
            from_node: The stage that ``to_node`` depends on
            to_node: The dependent stage
        """
        if from_node not in self.nodes or to_node not in self.nodes:
            raise StageGraphError("Both stages must exist in the graph before adding an edge")
        if to_node in self._adjacency_list[from_node]:
            return

        self._adjacency_list[from_node].append(to_node)
        self.nodes[to_node].dependencies.append(from_node)
        self.nodes[from_node].dependents.append(to_node)

    def get_dependencies(self, node_name: str) -> List[str]:
        """Stages this stage depends on."""
        return self.nodes[node_name].dependencies if node_name in self.nodes else []

    def get_dependents(self, node_name: str) -> List[str]:
        """Stages depending on this stage."""
        return self.nodes[node_name].dependents if node_name in self.nodes else []

    def downstream(self, node_name: str) -> List[str]:
        """Every stage that depends on ``node_name`` directly or transitively."""
        seen: List[str] = []
        queue = deque(self.get_dependents(node_name))
        while queue:
            node = queue.popleft()
            if node in seen:
                continue
            seen.append(node)
            queue.extend(self.get_dependents(node))
        return seen

    def topological_sort(self) -> List[str]:
        """
        Return a topological ordering of the stages.

        Raises:
            StageGraphError: If the graph contains cycles
        """
        in_degree = {node: 0 for node in self.nodes}
        for node in self.nodes:
            for dependent in self._adjacency_list[node]:
                in_degree[dependent] += 1

        queue = deque([node for node, degree in in_degree.items() if degree == 0])
        result = []

        while queue:
            node = queue.popleft()
            result.append(node)

            for dependent in self._adjacency_list[node]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    queue.append(dependent)

        if len(result) != len(self.nodes):
            raise StageGraphError("Stage graph contains cycles - cannot perform topological sort")

        return result

    def detect_cycles(self) -> Optional[List[str]]:
        """
        Detect a cycle.

        Returns:
            A cycle path if one exists, None otherwise
        """
        visited = set()
        rec_stack = set()
        path = []

        def dfs(node: str) -> Optional[List[str]]:
            visited.add(node)
            rec_stack.add(node)
            path.append(node)

            for neighbor in self._adjacency_list[node]:
                if neighbor not in visited:
                    cycle = dfs(neighbor)
                    if cycle:
                        return cycle
                elif neighbor in rec_stack:
                    cycle_start = path.index(neighbor)
                    return path[cycle_start:] + [neighbor]

            path.pop()
            rec_stack.remove(node)
            return None

        for node in self.nodes:
            if node not in visited:
                cycle = dfs(node)
                if cycle:
                    return cycle

        return None

    def verify_order(self, order: Iterable[str]) -> None:
        """
        Check that ``order`` invokes every stage after all of its dependencies.

        Raises:
            StageGraphError: If a stage appears before one of its dependencies
        """
        position = {name: index for index, name in enumerate(order)}
        for name, node in self.nodes.items():
            for dependency in node.dependencies:
                if position[dependency] > position[name]:
                    raise StageGraphError(
                        f"Stage '{name}' is called before '{dependency}', "
                        f"which produces its input"
                    )

    def get_execution_levels(self) -> List[List[str]]:
        """
        Group stages into levels whose members do not depend on each other.
        """
        sorted_nodes = self.topological_sort()
        levels: List[List[str]] = []

        for node in sorted_nodes:
            dependencies = set(self.get_dependencies(node))
            level_idx = 0

            for i, level in enumerate(levels):
                if dependencies.intersection(level):
                    level_idx = i + 1

            while len(levels) <= level_idx:
                levels.append([])

            levels[level_idx].append(node)

        return levels

    def to_dict(self) -> Dict[str, Any]:
        """Dictionary representation for serialization."""
        return {
            "nodes": [
                {
                    "name": node.name,
                    "produces": node.produces,
                    "consumes": node.consumes,
                    "dependencies": node.dependencies,
                    "dependents": node.dependents,
                }
                for node in self.nodes.values()
            ],
            "edges": [
                {"from": from_node, "to": to_node}
                for from_node, to_nodes in self._adjacency_list.items()
                for to_node in to_nodes
            ],
        }

    def __repr__(self) -> str:
        return f"StageGraph(nodes={len(self.nodes)}, edges={sum(len(deps) for deps in self._adjacency_list.values())})"
