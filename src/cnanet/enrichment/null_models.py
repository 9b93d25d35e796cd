"""
Degree-preserving random graphs for the neighbourhood null model.

Generators work on the bipartite predictor → response edge list only; y-y
edges play no part in hub neighbourhoods. Each call is a pure function of
(edges, seed), so trials can run in any process and in any order.

    RandomGraphGenerator (ABC)
    ├── BipartiteSwapGenerator       double edge swaps; every predictor and
    │                                response keeps its exact degree
    └── ConfigurationModelGenerator  bipartite configuration model, collapsed
                                     to a simple graph (degrees approximate
                                     when stubs pair twice)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import List, Sequence, Tuple

import networkx as nx
import numpy as np

logger = logging.getLogger(__name__)

__all__ = [
    'RandomGraphGenerator',
    'BipartiteSwapGenerator',
    'ConfigurationModelGenerator',
    'Edge',
]

Edge = Tuple[str, str]


class RandomGraphGenerator(ABC):
    """Produce a randomized predictor → response edge list."""

    name: str = 'random'

    @abstractmethod
    def generate(self, edges: Sequence[Edge], seed: int) -> List[Edge]:
        pass


class BipartiteSwapGenerator(RandomGraphGenerator):
    """
    Rewire by double edge swaps: (a, b), (c, d) → (a, d), (c, b).

    A swap is rejected when it would repeat an existing edge, so the graph
    stays simple and every node keeps its degree.

    Attributes:
        swaps_per_edge: Successful swaps to attempt, per edge
        max_tries_per_swap: Attempt budget multiplier before giving up
    """

    name = 'bipartite_swap'

    def __init__(self, swaps_per_edge: int = 10, max_tries_per_swap: int = 100):
        self.swaps_per_edge = swaps_per_edge
        self.max_tries_per_swap = max_tries_per_swap

    def generate(self, edges: Sequence[Edge], seed: int) -> List[Edge]:
        edges = [tuple(e) for e in edges]
        m = len(edges)
        if m < 2:
            return list(edges)

        rng = np.random.default_rng(seed)
        present = set(edges)
        n_swaps = self.swaps_per_edge * m
        max_tries = n_swaps * self.max_tries_per_swap

        done = tries = 0
        while done < n_swaps and tries < max_tries:
            tries += 1
            i, j = rng.integers(0, m, size=2)
            if i == j:
                continue
            a, b = edges[i]
            c, d = edges[j]
            if a == c or b == d:
                continue
            if (a, d) in present or (c, b) in present:
                continue
            present.difference_update(((a, b), (c, d)))
            present.update(((a, d), (c, b)))
            edges[i] = (a, d)
            edges[j] = (c, b)
            done += 1

        if done < n_swaps:
            logger.debug(f"Edge swaps: {done}/{n_swaps} completed in {tries} tries")
        return edges


class ConfigurationModelGenerator(RandomGraphGenerator):
    """
    networkx bipartite configuration model on the observed degree sequences.

    Parallel edges are merged, so heavily connected pairs can lose a little
    degree; use BipartiteSwapGenerator when exact degrees matter.
    """

    name = 'configuration_model'

    def generate(self, edges: Sequence[Edge], seed: int) -> List[Edge]:
        if not edges:
            return []
        predictors = sorted({e[0] for e in edges})
        responses = sorted({e[1] for e in edges})
        p_pos = {p: i for i, p in enumerate(predictors)}
        r_pos = {r: i for i, r in enumerate(responses)}

        aseq = [0] * len(predictors)
        bseq = [0] * len(responses)
        for p, r in edges:
            aseq[p_pos[p]] += 1
            bseq[r_pos[r]] += 1

        G = nx.bipartite.configuration_model(aseq, bseq, create_using=nx.Graph(), seed=seed)
        n_top = len(predictors)
        out = []
        for u, v in G.edges():
            if u > v:
                u, v = v, u
            out.append((predictors[u], responses[v - n_top]))
        out.sort()
        return out
