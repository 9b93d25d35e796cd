"""
Tests for hub ranking by final-graph degree and over bootstrap ensembles.
"""

import numpy as np
import pandas as pd
import pytest
from scipy import sparse

from cnanet.exceptions import ValidationError
from cnanet.network.hubs import BootstrapDegreeEnsemble, HubRanker, ordinal_ranks

from conftest import make_graph


@pytest.fixture
def graph():
    # degrees: A=3, B=2, C=2, D=0
    return make_graph(
        ['C', 'A', 'B', 'D'],
        ['r1', 'r2', 'r3'],
        [('C', 'r1'), ('C', 'r2'), ('A', 'r1'), ('A', 'r2'), ('A', 'r3'), ('B', 'r2'), ('B', 'r3')],
    )


class TestOrdinalRanks:
    def test_degree_descending_ties_by_id(self):
        ranks = ordinal_ranks(['c', 'a', 'b', 'd'], np.array([5, 5, 9, 0]))
        assert ranks.tolist() == [3, 2, 1, 4]

    def test_ranks_are_never_shared(self):
        ranks = ordinal_ranks(['a', 'b', 'c'], np.zeros(3))
        assert sorted(ranks.tolist()) == [1, 2, 3]


class TestHubRankerWithoutEnsemble:
    def test_final_degree_order(self, graph):
        ranking = HubRanker().rank(graph)
        assert [r['id'] for r in ranking.records] == ['A', 'B', 'C', 'D']
        assert [r['degree'] for r in ranking.records] == [3, 2, 2, 0]
        assert ranking.n_replicates == 0
        assert ranking.records[0]['sd_rank'] is None

    def test_annotates_nodes(self, graph):
        HubRanker().rank(graph)
        assert graph.nodes['A'].rank == 1
        assert graph.nodes['C'].mean_rank == 3.0
        assert graph.nodes['r1'].rank is None

    def test_top_and_frame(self, graph):
        ranking = HubRanker().rank(graph, annotate=False)
        assert [r['id'] for r in ranking.top(2)] == ['A', 'B']
        assert len(ranking.top()) == 4
        frame = ranking.to_frame()
        assert frame.columns.tolist() == ['id', 'alias', 'level', 'degree', 'rank', 'mean_rank', 'sd_rank']
        assert graph.nodes['A'].rank is None

    def test_response_level(self, graph):
        ranking = HubRanker(level='y').rank(graph)
        assert [r['id'] for r in ranking.records] == ['r2', 'r1', 'r3']


class TestHubRankerWithEnsemble:
    def test_consistent_hub_precedes_alternating_one(self, graph):
        """A ranks 1 in every replicate; B and C alternate between 2 and 3."""
        table = pd.DataFrame(
            {'rep1': [10, 5, 3, 0], 'rep2': [10, 3, 5, 0], 'rep3': [10, 5, 3, 0], 'rep4': [10, 3, 5, 0]},
            index=['A', 'B', 'C', 'D'],
        )
        ranking = HubRanker().rank(graph, BootstrapDegreeEnsemble.from_table(table))
        by_id = {r['id']: r for r in ranking.records}

        assert by_id['A']['mean_rank'] == 1.0
        assert by_id['A']['sd_rank'] == 0.0
        assert by_id['B']['mean_rank'] == pytest.approx(2.5)
        assert by_id['A']['mean_rank'] < by_id['B']['mean_rank']
        assert by_id['B']['sd_rank'] == pytest.approx(np.std([2, 3, 2, 3], ddof=1))
        assert [r['id'] for r in ranking.records] == ['A', 'B', 'C', 'D']
        assert ranking.n_replicates == 4

    def test_stability_breaks_mean_ties(self, graph):
        # B ranks {1, 4}, C ranks {2, 3}: same mean, C is steadier
        table = pd.DataFrame(
            {'rep1': [7, 9, 8, 0], 'rep2': [9, 0, 7, 8]},
            index=['A', 'B', 'C', 'D'],
        )
        ranking = HubRanker().rank(graph, BootstrapDegreeEnsemble.from_table(table))
        by_id = {r['id']: r for r in ranking.records}
        assert by_id['B']['mean_rank'] == pytest.approx(by_id['C']['mean_rank'])
        assert by_id['C']['sd_rank'] < by_id['B']['sd_rank']
        assert [r['id'] for r in ranking.records] == ['A', 'C', 'B', 'D']

    def test_single_replicate_sd_zero(self, graph):
        table = pd.DataFrame({'rep1': [1, 2, 3, 4]}, index=['A', 'B', 'C', 'D'])
        ranking = HubRanker().rank(graph, BootstrapDegreeEnsemble.from_table(table))
        assert all(r['sd_rank'] == 0.0 for r in ranking.records)
        assert ranking.records[0]['id'] == 'D'

    def test_missing_node_has_degree_zero(self, graph):
        table = pd.DataFrame({'rep1': [4, 3, 2], 'rep2': [4, 3, 2]}, index=['D', 'C', 'B'])
        ranking = HubRanker().rank(graph, BootstrapDegreeEnsemble.from_table(table))
        assert [r['id'] for r in ranking.records] == ['D', 'C', 'B', 'A']

    def test_unknown_node_rejected(self, graph):
        table = pd.DataFrame({'rep1': [1]}, index=['Z'])
        with pytest.raises(ValidationError, match="absent"):
            HubRanker().rank(graph, BootstrapDegreeEnsemble.from_table(table))

    def test_level_mismatch_rejected(self, graph):
        table = pd.DataFrame({'rep1': [1]}, index=['r1'])
        with pytest.raises(ValidationError):
            HubRanker(level='x').rank(graph, BootstrapDegreeEnsemble.from_table(table, level='y'))


class TestBootstrapDegreeEnsemble:
    def test_negative_degrees_rejected(self):
        with pytest.raises(ValidationError):
            BootstrapDegreeEnsemble(pd.DataFrame({'rep1': [-1]}, index=['A']))

    def test_from_replicates(self):
        rep1 = (np.array([[1.0, 0.0], [1.0, 1.0]]), np.array([[0.0, 1.0], [1.0, 0.0]]))
        rep2 = (np.array([[0.0, 0.0], [0.0, 1.0]]), None)
        ensemble = BootstrapDegreeEnsemble.from_replicates([rep1, rep2], ['x1', 'x2'], ['y1', 'y2'])
        assert ensemble.n_replicates == 2
        assert ensemble.degrees.loc['x2'].tolist() == [2, 1]

        responses = BootstrapDegreeEnsemble.from_replicates([rep1], ['x1', 'x2'], ['y1', 'y2'], level='y')
        assert responses.degrees['replicate_1'].tolist() == [3, 2]

    def test_from_replicates_reindexes_frames(self):
        A_xy = pd.DataFrame([[1.0]], index=['x2'], columns=['y1'])
        ensemble = BootstrapDegreeEnsemble.from_replicates([(A_xy, None)], ['x1', 'x2'], ['y1', 'y2'])
        assert ensemble.degrees['replicate_1'].tolist() == [0, 1]

    def test_from_sparse_replicates(self):
        A_xy = sparse.csr_matrix(np.array([[1.0, 0.0], [1.0, 1.0]]))
        A_yy = sparse.csr_matrix(np.array([[2.0, 1.0], [1.0, 0.0]]))

        predictors = BootstrapDegreeEnsemble.from_replicates([(A_xy, A_yy)], ['x1', 'x2'], ['y1', 'y2'])
        assert predictors.degrees['replicate_1'].tolist() == [1, 2]

        responses = BootstrapDegreeEnsemble.from_replicates(
            [(A_xy, A_yy)], ['x1', 'x2'], ['y1', 'y2'], level='y'
        )
        # diagonal entry of y1 is not an edge
        assert responses.degrees['replicate_1'].tolist() == [3, 2]

    def test_sparse_and_dense_replicates_agree(self):
        rng = np.random.default_rng(5)
        A_xy = rng.binomial(1, 0.3, size=(6, 8)) * rng.normal(size=(6, 8))
        upper = np.triu(rng.binomial(1, 0.3, size=(8, 8)) * rng.normal(size=(8, 8)), k=1)
        A_yy = upper + upper.T
        ids_x = [f"x{i}" for i in range(6)]
        ids_y = [f"y{i}" for i in range(8)]
        for level in ('x', 'y'):
            dense = BootstrapDegreeEnsemble.from_replicates([(A_xy, A_yy)], ids_x, ids_y, level=level)
            sparse_ = BootstrapDegreeEnsemble.from_replicates(
                [(sparse.coo_matrix(A_xy), sparse.csr_matrix(A_yy))], ids_x, ids_y, level=level
            )
            pd.testing.assert_frame_equal(dense.degrees, sparse_.degrees)

    def test_sparse_explicit_zeros_are_not_edges(self):
        A_xy = sparse.csr_matrix((np.array([0.0, 1.0]), (np.array([0, 1]), np.array([0, 1]))), shape=(2, 2))
        stored = A_xy.nnz
        ensemble = BootstrapDegreeEnsemble.from_replicates([(A_xy, None)], ['x1', 'x2'], ['y1', 'y2'])
        assert ensemble.degrees['replicate_1'].tolist() == [0, 1]
        assert A_xy.nnz == stored

    def test_fractional_degrees_rejected(self):
        with pytest.raises(ValidationError, match="integer"):
            BootstrapDegreeEnsemble(pd.DataFrame({'rep1': [2.7, 1.0]}, index=['A', 'B']))
