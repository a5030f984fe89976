"""
Pipeline-consistent environment ordering.

Builds the promotion graph from a deployment pipeline, orders its nodes with
Kahn's algorithm, then re-sorts by longest-path level with a curated
tie-break (development, staging, production) and a lexical fallback.
Environments the pipeline never mentions are appended in input order.
"""

import logging
from collections import deque
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .models import DeploymentPipeline, EnvironmentRecord, PromotionTarget

logger = logging.getLogger(__name__)

PREFERRED_ENVIRONMENT_ORDER = ["development", "staging", "production"]


class NameIndex:
    """
    Case-insensitive name lookup built once per resolution.
    The first casing registered for a key is the canonical one.
    """

    def __init__(self):
        self._canonical: Dict[str, str] = {}

    @staticmethod
    def key(name: str) -> str:
        return name.strip().casefold()

    @classmethod
    def from_environments(cls, environments: Iterable[EnvironmentRecord]) -> "NameIndex":
        envs = list(environments)
        index = cls()
        for env in envs:
            index.register(env.canonical_name)
        # resource names resolve to the display name unless already taken
        for env in envs:
            index.alias(env.name, env.canonical_name)
        return index

    def register(self, name: str) -> str:
        return self._canonical.setdefault(self.key(name), name)

    def alias(self, name: str, canonical: str) -> None:
        self._canonical.setdefault(self.key(name), canonical)

    def canonical(self, name: str) -> str:
        """Canonical form of a known name; unknown names are registered first-seen."""
        return self.register(name)

    def __contains__(self, name: str) -> bool:
        return self.key(name) in self._canonical


class PromotionGraph:
    """Directed graph over canonical environment names, edges = promotion permissions."""

    def __init__(self):
        self.nodes: List[str] = []
        self.successors: Dict[str, List[str]] = {}
        self.predecessors: Dict[str, List[str]] = {}
        self.targets: Dict[str, List[PromotionTarget]] = {}

    @classmethod
    def from_pipeline(cls, pipeline: Optional[DeploymentPipeline], index: NameIndex) -> "PromotionGraph":
        graph = cls()
        if not pipeline:
            return graph
        for path in pipeline.promotion_paths:
            source = index.canonical(path.source_environment_ref)
            graph._add_node(source)
            for target in path.target_environment_refs:
                graph.add_edge(source, target.model_copy(update={"name": index.canonical(target.name)}))
        return graph

    def _add_node(self, name: str) -> None:
        if name not in self.successors:
            self.nodes.append(name)
            self.successors[name] = []
            self.predecessors[name] = []
            self.targets[name] = []

    def add_edge(self, source: str, target: PromotionTarget) -> None:
        self._add_node(source)
        self._add_node(target.name)
        if target.name in self.successors[source]:
            return
        self.successors[source].append(target.name)
        self.predecessors[target.name].append(source)
        self.targets[source].append(target)

    def promotion_targets(self, name: str) -> List[PromotionTarget]:
        return list(self.targets.get(name, []))

    def __contains__(self, name: str) -> bool:
        return name in self.successors

    def __bool__(self) -> bool:
        return bool(self.nodes)


def kahn_order(graph: PromotionGraph) -> Tuple[List[str], List[str]]:
    """Topological order of the graph plus the nodes stuck in cycles."""
    in_degree = {node: len(graph.predecessors[node]) for node in graph.nodes}
    queue = deque(node for node in graph.nodes if in_degree[node] == 0)
    result: List[str] = []
    while queue:
        current = queue.popleft()
        result.append(current)
        for neighbor in graph.successors[current]:
            in_degree[neighbor] -= 1
            if in_degree[neighbor] == 0:
                queue.append(neighbor)
    placed = set(result)
    return result, [node for node in graph.nodes if node not in placed]


def node_levels(graph: PromotionGraph, nodes: Sequence[str]) -> Dict[str, int]:
    """Longest path length from any root, for acyclic nodes only."""
    levels: Dict[str, int] = {}

    def level(node: str) -> int:
        if node not in levels:
            levels[node] = max((level(p) + 1 for p in graph.predecessors[node]), default=0)
        return levels[node]

    for node in nodes:
        level(node)
    return levels


def _tie_break(name: str, preferred: Sequence[str]) -> Tuple[int, int, str, str]:
    key = NameIndex.key(name)
    if key in preferred:
        return (0, preferred.index(key), "", name)
    return (1, 0, key, name)


def resolve_environment_order(
    environment_names: Sequence[str],
    pipeline: Optional[DeploymentPipeline] = None,
    index: Optional[NameIndex] = None,
    preferred: Optional[Sequence[str]] = None,
    graph: Optional[PromotionGraph] = None,
) -> List[str]:
    """
    Order environment names consistently with the promotion graph.

    The result is a permutation of the (canonicalised, de-duplicated) input
    names. Graph nodes that are not environments are left out. Nodes caught
    in a cycle are kept and appended after the acyclic prefix in input order.
    """
    if index is None:
        index = NameIndex()
        for name in environment_names:
            index.register(name)
    names: List[str] = []
    for name in environment_names:
        canonical = index.canonical(name)
        if canonical not in names:
            names.append(canonical)

    if graph is None:
        graph = PromotionGraph.from_pipeline(pipeline, index)
    if not graph:
        return names

    preferred = [NameIndex.key(p) for p in (preferred if preferred is not None else PREFERRED_ENVIRONMENT_ORDER)]
    ordered, cyclic = kahn_order(graph)
    levels = node_levels(graph, ordered)
    ordered.sort(key=lambda n: (levels[n],) + _tie_break(n, preferred))

    if cyclic:
        logger.warning(f"[Topology] Promotion graph has a cycle through {sorted(cyclic)}; "
                       f"appending those environments in input order")
        in_env = [n for n in names if n in cyclic]
        ordered.extend(in_env + sorted((n for n in cyclic if n not in in_env), key=NameIndex.key))

    env_set = set(names)
    result = [n for n in ordered if n in env_set]
    placed = set(result)
    result.extend(n for n in names if n not in placed)
    return result
