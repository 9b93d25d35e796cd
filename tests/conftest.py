"""
Pytest configuration and shared fixtures.

Synthetic networks, matrices and functional universes are generated with
fixed seeds so every test is deterministic.
"""

import numpy as np
import pandas as pd
import pytest

from cnanet.core.graph import EdgeRecord, NetworkGraph, NodeRecord
from cnanet.core.intervals import GenomicInterval
from cnanet.enrichment.functional_sets import FunctionalSetUniverse


def make_graph(predictors, responses, xy_edges, yy_edges=(), intervals=None):
    """
    Build a NetworkGraph from id lists and (source, target[, weight]) tuples.

    ``intervals`` maps node id -> (chromosome, start, end).
    """
    intervals = intervals or {}

    def node(nid, level):
        coords = intervals.get(nid)
        interval = GenomicInterval(*coords) if coords else GenomicInterval()
        return NodeRecord(id=nid, level=level, interval=interval)

    nodes = [node(p, 'x') for p in predictors] + [node(r, 'y') for r in responses]
    edges = []
    for level, pairs in (('x-y', xy_edges), ('y-y', yy_edges)):
        for pair in pairs:
            weight = pair[2] if len(pair) > 2 else 1.0
            edges.append(EdgeRecord(source=pair[0], target=pair[1], level=level, weight=weight))
    return NetworkGraph(nodes, edges)


def generate_predictor_matrix(n_samples=30, n_features=6, seed=42):
    """Samples x features matrix of independent normal columns."""
    rng = np.random.default_rng(seed)
    data = rng.normal(size=(n_samples, n_features))
    return pd.DataFrame(
        data,
        index=[f"S{i}" for i in range(n_samples)],
        columns=[f"p{i + 1}" for i in range(n_features)],
    )


@pytest.fixture
def rng():
    return np.random.default_rng(42)


@pytest.fixture
def two_community_graph():
    """
    Two dense predictor/response blocks joined by a single bridge edge.

    Block A: predictors a1..a3, responses ra1..ra4 (complete bipartite)
    Block B: predictors b1..b3, responses rb1..rb4 (complete bipartite)
    Bridge:  a1 - rb1
    """
    pa = ['a1', 'a2', 'a3']
    pb = ['b1', 'b2', 'b3']
    ra = ['ra1', 'ra2', 'ra3', 'ra4']
    rb = ['rb1', 'rb2', 'rb3', 'rb4']
    xy = [(p, r) for p in pa for r in ra] + [(p, r) for p in pb for r in rb] + [('a1', 'rb1')]
    return make_graph(pa + pb, ra + rb, xy)


@pytest.fixture
def small_universe():
    """Universe over responses r1..r40 with size bounds lowered for tests."""
    mapping = {
        'GO:A': [f"r{i}" for i in range(1, 6)],
        'GO:B': [f"r{i}" for i in range(4, 10)],
        'GO:C': [f"r{i}" for i in range(20, 26)],
    }
    return FunctionalSetUniverse.from_mapping(mapping, min_size=2, max_size=50)
