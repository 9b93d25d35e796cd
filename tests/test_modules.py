"""
Tests for module detection and canonical module numbering.
"""

import networkx as nx
import pytest

from cnanet.exceptions import ValidationError
from cnanet.network.modules import (
    EdgeBetweennessDetector,
    GreedyModularityDetector,
    ModuleDetector,
    ModuleResult,
    PrecomputedAssignment,
    canonical_modules,
)

from conftest import make_graph

BLOCK_A = ['a1', 'a2', 'a3', 'ra1', 'ra2', 'ra3', 'ra4']
BLOCK_B = ['b1', 'b2', 'b3', 'rb1', 'rb2', 'rb3', 'rb4']


class TestCanonicalModules:
    def test_size_then_smallest_member(self):
        modules = canonical_modules([{'z'}, {'d', 'c'}, {'b', 'a'}, set()])
        assert modules == {1: ['a', 'b'], 2: ['c', 'd'], 3: ['z']}


class TestEdgeBetweenness:
    def test_splits_at_bridge(self, two_community_graph):
        result = ModuleDetector(EdgeBetweennessDetector(), min_module_size=1).detect(two_community_graph)
        assert result.modules == {1: sorted(BLOCK_A), 2: sorted(BLOCK_B)}
        assert result.method == 'edge_betweenness'
        assert result.modularity > 0.3
        assert [(e.source, e.target) for e in result.cross_module_edges] == [('a1', 'rb1')]

    def test_deterministic(self, two_community_graph):
        first = ModuleDetector(min_module_size=1).detect(two_community_graph, annotate=False)
        second = ModuleDetector(min_module_size=1).detect(two_community_graph, annotate=False)
        assert first.assignment == second.assignment

    def test_max_splits_limits_refinement(self, two_community_graph):
        result = ModuleDetector(EdgeBetweennessDetector(max_splits=1), min_module_size=1).detect(
            two_community_graph
        )
        assert len(result.modules) == 2

    def test_modularity_trace_records_every_split(self, two_community_graph):
        result = ModuleDetector(EdgeBetweennessDetector(), min_module_size=1).detect(two_community_graph)
        n_edges = len(two_community_graph.edges)
        # initial components plus at most one partition per removed edge
        assert 2 <= len(result.modularity_trace) <= n_edges + 1
        assert result.modularity_trace[0] == pytest.approx(0.0)
        assert max(result.modularity_trace) == pytest.approx(result.modularity)
        assert two_community_graph.metadata['modularity_trace'] == result.modularity_trace

    def test_modularity_trace_respects_max_splits(self, two_community_graph):
        detector = EdgeBetweennessDetector(max_splits=1)
        result = ModuleDetector(detector, min_module_size=1).detect(two_community_graph)
        assert len(result.modularity_trace) == 2
        assert result.modularity_trace == detector.trace

    def test_components_without_edges_between(self):
        graph = make_graph(['x1', 'x2'], ['y1', 'y2'], [('x1', 'y1'), ('x2', 'y2')])
        result = ModuleDetector(min_module_size=1).detect(graph)
        assert result.modules == {1: ['x1', 'y1'], 2: ['x2', 'y2']}
        assert result.cross_module_edges == []

    def test_no_edges_gives_singletons(self):
        graph = make_graph(['x1'], ['y1', 'y2'], [])
        result = ModuleDetector(min_module_size=1).detect(graph)
        assert result.modules == {1: ['x1'], 2: ['y1'], 3: ['y2']}
        assert result.modularity is None
        assert result.modularity_trace == []

    def test_empty_graph(self):
        result = ModuleDetector().detect(make_graph([], [], []))
        assert result.modules == {}
        assert result.qualifying == {}


class TestGreedyModularity:
    def test_recovers_blocks(self, two_community_graph):
        result = ModuleDetector(GreedyModularityDetector(), min_module_size=1).detect(two_community_graph)
        assert result.modules == {1: sorted(BLOCK_A), 2: sorted(BLOCK_B)}
        assert result.method == 'greedy_modularity'


class TestPrecomputedAssignment:
    def test_labels_renumbered(self, two_community_graph):
        assignment = {n: 'left' for n in BLOCK_A}
        assignment.update({n: 'right' for n in BLOCK_B[:-1]})
        assignment['rb4'] = 'stray'
        result = ModuleDetector(PrecomputedAssignment(assignment), min_module_size=2).detect(two_community_graph)
        assert result.modules[1] == sorted(BLOCK_A)
        assert result.modules[3] == ['rb4']
        assert list(result.qualifying) == [1, 2]
        assert result.method == 'precomputed'

    def test_missing_node_rejected(self, two_community_graph):
        assignment = {n: 1 for n in BLOCK_A}
        with pytest.raises(ValidationError, match="misses"):
            ModuleDetector(PrecomputedAssignment(assignment)).detect(two_community_graph)

    def test_extra_ids_ignored(self, two_community_graph, caplog):
        assignment = {n: 1 for n in BLOCK_A + BLOCK_B}
        assignment['ghost'] = 2
        result = ModuleDetector(PrecomputedAssignment(assignment), min_module_size=1).detect(two_community_graph)
        assert len(result.modules) == 1
        assert "absent from the network" in caplog.text


class TestModuleResult:
    def test_annotation_and_reload(self, two_community_graph):
        detected = ModuleDetector(min_module_size=7).detect(two_community_graph)
        assert two_community_graph.nodes['a1'].module == 1
        assert two_community_graph.metadata['module_method'] == 'edge_betweenness'

        reloaded = ModuleResult.from_graph(two_community_graph, min_module_size=7)
        assert reloaded.modules == detected.modules
        assert reloaded.modularity == detected.modularity
        assert len(reloaded.cross_module_edges) == 1

    def test_from_graph_requires_annotation(self, two_community_graph):
        with pytest.raises(ValidationError):
            ModuleResult.from_graph(two_community_graph)

    def test_size_threshold(self, two_community_graph):
        result = ModuleDetector(min_module_size=8).detect(two_community_graph)
        assert result.qualifying == {}
        assert all(node.module is not None for node in two_community_graph.nodes.values())

    def test_records(self, two_community_graph):
        result = ModuleDetector(min_module_size=7).detect(two_community_graph)
        records = result.records(two_community_graph)
        assert records[0] == {
            'module': 1, 'size': 7, 'qualifies': True,
            'n_predictors': 3, 'n_responses': 4, 'n_internal_edges': 12,
        }
        table = result.cross_module_table()
        assert table[['source_module', 'target_module']].values.tolist() == [[1, 2]]

    def test_invalid_min_size(self):
        with pytest.raises(ValidationError):
            ModuleDetector(min_module_size=0)

    def test_modularity_unweighted(self, two_community_graph):
        G = nx.Graph()
        G.add_edges_from((e.source, e.target) for e in two_community_graph.edges)
        q = EdgeBetweennessDetector().modularity(G, [set(BLOCK_A), set(BLOCK_B)])
        assert q == pytest.approx(nx.community.modularity(G, [set(BLOCK_A), set(BLOCK_B)]))
