"""Dependency graph builder - derives a DAG from task effects and preconditions.

Compound nodes are structural only: they are dropped from the graph after
their undeclared annotations have been inherited by their descendants.
Edges are derived STRIPS-style (an effect of A matching a precondition of B
gives A -> B), cycles are reported rather than broken, and the execution
order is a Kahn topological sort with ties broken by creation order.
"""

import heapq
from collections import defaultdict, deque

from loguru import logger

from taskweave.core.exceptions import CyclicDependencyError
from taskweave.decomposition.models import TaskGraph, TaskHierarchy, TaskNode


class DependencyGraphBuilder:
    """
    Build a TaskGraph from a TaskHierarchy.

    Example:
        >>> graph = DependencyGraphBuilder().build(hierarchy)
        >>> graph.edges
        (('CreateDatabase@0.1.0', 'CreateAPI@0.1.1'),)
        >>> graph.order[0]
        'SetupEnvironment@0.0'
    """

    def build(self, hierarchy: TaskHierarchy) -> TaskGraph:
        """
        Build the dependency graph.

        Args:
            hierarchy: Output of the decomposition engine.

        Returns:
            TaskGraph with resolved primitive nodes, edges, order and waves.

        Raises:
            CyclicDependencyError: If the derived edges contain a cycle.
        """
        nodes = {
            node.id: self.resolve_annotations(node, hierarchy)
            for node in hierarchy.primitive_nodes()
        }
        logger.info(f"Building dependency graph for {len(nodes)} primitive tasks")

        edges, unsatisfied = self.derive_edges(nodes)
        order = self.topological_order(nodes, edges)
        waves = self.calculate_waves(order, edges)

        logger.info(
            f"Dependency graph has {len(edges)} edges across {len(waves)} waves"
        )
        return TaskGraph(
            nodes=nodes,
            edges=tuple(edges),
            order=tuple(order),
            waves=tuple(tuple(w) for w in waves),
            unsatisfied_preconditions=unsatisfied,
            errors=hierarchy.errors,
        )

    # =========================================================================
    # ANNOTATION INHERITANCE
    # =========================================================================

    @staticmethod
    def resolve_annotations(node: TaskNode, hierarchy: TaskHierarchy) -> TaskNode:
        """
        Fill undeclared preconditions/effects from the nearest declaring ancestor.

        Returns a new node; the hierarchy's node is left untouched.
        """
        preconditions = node.preconditions
        effects = node.effects
        ancestor = hierarchy.get_parent(node.id)

        while ancestor is not None and (preconditions is None or effects is None):
            if preconditions is None:
                preconditions = ancestor.preconditions
            if effects is None:
                effects = ancestor.effects
            ancestor = hierarchy.get_parent(ancestor.id)

        return node.model_copy(
            update={
                "preconditions": preconditions if preconditions is not None else frozenset(),
                "effects": effects if effects is not None else frozenset(),
            }
        )

    # =========================================================================
    # EDGES
    # =========================================================================

    def derive_edges(
        self,
        nodes: dict[str, TaskNode],
    ) -> tuple[list[tuple[str, str]], dict[str, frozenset[str]]]:
        """
        Match effects against preconditions.

        Returns:
            Tuple of (edges sorted by creation order, preconditions per node
            that no other primitive task produces).
        """
        producers: dict[str, list[str]] = defaultdict(list)
        for node in nodes.values():
            for effect in node.effects or ():
                producers[effect].append(node.id)

        edges: set[tuple[str, str]] = set()
        unsatisfied: dict[str, frozenset[str]] = {}

        for node in nodes.values():
            missing: set[str] = set()
            for precondition in node.preconditions or ():
                sources = [p for p in producers.get(precondition, []) if p != node.id]
                if not sources:
                    missing.add(precondition)
                for source in sources:
                    edges.add((source, node.id))
            if missing:
                unsatisfied[node.id] = frozenset(missing)
                logger.warning(
                    f"Task {node.id} has preconditions no task produces: {sorted(missing)}"
                )

        sequence = {node_id: node.sequence for node_id, node in nodes.items()}
        ordered = sorted(edges, key=lambda e: (sequence[e[0]], sequence[e[1]]))
        logger.debug(f"Derived {len(ordered)} dependency edges")
        return ordered, unsatisfied

    # =========================================================================
    # TOPOLOGICAL SORT
    # =========================================================================

    def topological_order(
        self,
        nodes: dict[str, TaskNode],
        edges: list[tuple[str, str]],
    ) -> list[str]:
        """
        Kahn's algorithm, always releasing the earliest-created ready task.

        Raises:
            CyclicDependencyError: With the minimal cycle if the edges are cyclic.
        """
        successors: dict[str, list[str]] = defaultdict(list)
        in_degree = {node_id: 0 for node_id in nodes}
        for source, target in edges:
            successors[source].append(target)
            in_degree[target] += 1

        ready = [(nodes[i].sequence, i) for i, degree in in_degree.items() if degree == 0]
        heapq.heapify(ready)
        order: list[str] = []

        while ready:
            _, node_id = heapq.heappop(ready)
            order.append(node_id)
            for successor in successors[node_id]:
                in_degree[successor] -= 1
                if in_degree[successor] == 0:
                    heapq.heappush(ready, (nodes[successor].sequence, successor))

        if len(order) != len(nodes):
            sorted_ids = set(order)
            remaining = sorted(
                (i for i in nodes if i not in sorted_ids),
                key=lambda i: nodes[i].sequence,
            )
            cycle = self.find_minimal_cycle(remaining, successors)
            logger.error(f"Circular dependency detected: {' -> '.join(cycle)}")
            raise CyclicDependencyError(cycle)

        return order

    @staticmethod
    def find_minimal_cycle(
        candidates: list[str],
        successors: dict[str, list[str]],
    ) -> list[str]:
        """
        Find the shortest cycle among nodes Kahn's algorithm could not release.

        Args:
            candidates: Unreleased node ids, in creation order.
            successors: Adjacency lists.

        Returns:
            Cycle as a closed path, e.g. ``["a", "b", "a"]``.
        """
        allowed = set(candidates)
        best: list[str] = []

        for start in candidates:
            previous: dict[str, str] = {}
            queue: deque[str] = deque([start])
            visited = {start}
            found = False

            while queue and not found:
                current = queue.popleft()
                for successor in successors.get(current, []):
                    if successor not in allowed:
                        continue
                    if successor == start:
                        previous[start] = current
                        found = True
                        break
                    if successor not in visited:
                        visited.add(successor)
                        previous[successor] = current
                        queue.append(successor)

            if not found:
                continue

            path = [start]
            node = previous[start]
            while node != start:
                path.append(node)
                node = previous[node]
            path.append(start)
            path.reverse()

            if not best or len(path) < len(best):
                best = path
                if len(best) == 3:
                    break

        return best

    # =========================================================================
    # WAVES
    # =========================================================================

    @staticmethod
    def calculate_waves(
        order: list[str],
        edges: list[tuple[str, str]],
    ) -> list[list[str]]:
        """
        Group tasks into waves that can run in parallel.

        A task's wave is one past the latest wave of its dependencies.
        Within a wave, tasks keep their topological order.
        """
        dependencies: dict[str, list[str]] = defaultdict(list)
        for source, target in edges:
            dependencies[target].append(source)

        level: dict[str, int] = {}
        for node_id in order:
            deps = dependencies.get(node_id, [])
            level[node_id] = 1 + max(level[d] for d in deps) if deps else 0

        waves: list[list[str]] = [[] for _ in range(max(level.values(), default=-1) + 1)]
        for node_id in order:
            waves[level[node_id]].append(node_id)

        for i, wave in enumerate(waves):
            logger.debug(f"Wave {i}: {len(wave)} tasks")

        return waves
