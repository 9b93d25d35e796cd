"""
Tests for cis/trans classification of predictor -> response edges.

The window boundary is inclusive: a gap of exactly ``cis_window`` bp is
cis, one more base pair is trans.
"""

import pytest

from cnanet.core.intervals import GenomicInterval, GenomicIntervalIndex
from cnanet.exceptions import ValidationError
from cnanet.network.cis_trans import DEFAULT_CIS_WINDOW, CisTransClassifier

from conftest import make_graph

WINDOW = 1_000


@pytest.fixture
def graph():
    intervals = {
        'x1': ('chr1', 10_000, 20_000),
        'x2': ('3', 500, 600),
        'x3': (None, None, None),
        'at_window': ('1', 21_000, 21_500),
        'past_window': ('1', 21_001, 21_500),
        'other_chrom': ('2', 10_000, 20_000),
        'inside': ('1', 15_000, 15_100),
        'unlinked_near': ('1', 9_500, 9_800),
        'unresolved': ('1', None, None),
    }
    return make_graph(
        ['x1', 'x2', 'x3'],
        ['at_window', 'past_window', 'other_chrom', 'inside', 'unlinked_near', 'unresolved'],
        [
            ('x1', 'at_window'),
            ('x1', 'past_window'),
            ('x1', 'other_chrom'),
            ('x1', 'inside'),
            ('x1', 'unresolved'),
            ('x2', 'inside'),
            ('x3', 'inside'),
        ],
        [('inside', 'at_window')],
        intervals=intervals,
    )


class TestClassifyPair:
    def test_boundary_inclusive(self):
        classifier = CisTransClassifier(cis_window=WINDOW)
        predictor = GenomicInterval('1', 10_000, 20_000)
        assert classifier.classify_pair(predictor, GenomicInterval('1', 21_000, 21_010)) == 'cis'
        assert classifier.classify_pair(predictor, GenomicInterval('1', 21_001, 21_010)) == 'trans'
        assert classifier.classify_pair(predictor, GenomicInterval('1', 8_999, 9_000)) == 'cis'
        assert classifier.classify_pair(predictor, GenomicInterval('1', 8_998, 8_999)) == 'trans'

    def test_other_chromosome_always_trans(self):
        classifier = CisTransClassifier(cis_window=10**12)
        predictor = GenomicInterval('1', 100, 200)
        assert classifier.classify_pair(predictor, GenomicInterval('2', 100, 200)) == 'trans'

    def test_unresolved_is_unknown(self):
        classifier = CisTransClassifier()
        assert classifier.classify_pair(GenomicInterval('1', 1, 2), GenomicInterval()) == 'unknown'

    def test_zero_window_requires_overlap(self):
        classifier = CisTransClassifier(cis_window=0)
        predictor = GenomicInterval('1', 100, 200)
        assert classifier.classify_pair(predictor, GenomicInterval('1', 200, 300)) == 'cis'
        assert classifier.classify_pair(predictor, GenomicInterval('1', 201, 300)) == 'trans'

    def test_negative_window_rejected(self):
        with pytest.raises(ValidationError):
            CisTransClassifier(cis_window=-1)

    def test_default_window(self):
        assert CisTransClassifier().cis_window == DEFAULT_CIS_WINDOW == 2_000_000


class TestClassifyGraph:
    def test_edge_labels(self, graph):
        result = CisTransClassifier(cis_window=WINDOW).classify(graph)
        labels = [e.cis_trans for e in graph.edges]
        assert labels == ['cis', 'trans', 'trans', 'cis', 'unknown', 'trans', 'unknown', 'unknown']
        assert result.counts() == {'cis': 2, 'trans': 3, 'unknown': 2}
        assert 7 not in result.edge_labels

    def test_predictor_summaries(self, graph):
        result = CisTransClassifier(cis_window=WINDOW).classify(graph)
        by_id = {r['id']: r for r in result.records}

        assert by_id['x1']['n_cis'] == 2
        assert by_id['x1']['n_trans'] == 2
        assert by_id['x1']['n_unknown'] == 1
        assert by_id['x1']['cis_targets'] == ['at_window', 'inside']
        # at_window, inside and the unlinked neighbour lie within the window
        assert by_id['x1']['n_potential_cis'] == 3
        assert by_id['x2']['n_potential_cis'] == 0
        assert by_id['x3']['n_potential_cis'] is None

        node = graph.nodes['x1']
        assert node.n_cis == 2
        assert node.n_potential_cis == 3
        assert node.cis_targets == ['at_window', 'inside']

    def test_response_set_shared_across_predictors(self, graph, monkeypatch):
        seen = []
        within = GenomicIntervalIndex.within

        def recording_within(self, query, window, candidates=None):
            seen.append(candidates)
            return within(self, query, window, candidates=candidates)

        monkeypatch.setattr(GenomicIntervalIndex, 'within', recording_within)
        result = CisTransClassifier(cis_window=WINDOW).classify(graph, annotate=False)

        assert len(seen) == 2
        assert seen[0] is seen[1]
        assert isinstance(seen[0], frozenset)
        assert {r['id']: r['n_potential_cis'] for r in result.records}['x1'] == 3

    def test_no_annotation(self, graph):
        CisTransClassifier(cis_window=WINDOW).classify(graph, annotate=False)
        assert all(e.cis_trans == 'unknown' for e in graph.edges)
        assert graph.nodes['x1'].n_cis is None

    def test_external_index_overrides_node_intervals(self, graph):
        index = GenomicIntervalIndex({'x3': GenomicInterval('1', 15_000, 15_050),
                                      'inside': GenomicInterval('1', 15_000, 15_100)})
        result = CisTransClassifier(cis_window=WINDOW).classify(graph, index=index, annotate=False)
        assert result.edge_labels[6] == 'cis'
        assert result.edge_labels[0] == 'unknown'

    def test_frame(self, graph):
        frame = CisTransClassifier(cis_window=WINDOW).classify(graph).to_frame()
        assert frame['id'].tolist() == ['x1', 'x2', 'x3']
        assert 'n_potential_cis' in frame.columns
