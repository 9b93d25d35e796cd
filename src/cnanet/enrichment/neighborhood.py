"""
Functional coherence of hub neighbourhoods against a permutation null.

The neighbourhood of a predictor is the set of responses it is directly
linked to. A pair of neighbours is a *GO-neighbour pair* when the two share
at least one functional set; the neighbourhood score is

    proportion = GO-neighbour pairs / C(n, 2)

and is undefined for n < 2. The observed statistic is the mean proportion
over scored hubs. The null distribution recomputes that mean on degree
preserving randomisations of the predictor → response edges.

Reported:
    z = (observed - null_mean) / null_sd
    p = (1 + #{null >= observed}) / (T + 1)

Trials are independent units with seeds spawned from one root seed, so a
run is reproducible regardless of worker count, and an interrupted run can
resume from its checkpoint (one JSON file, rewritten atomically).
"""

from __future__ import annotations

import logging
import os
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
from scipy import sparse

from cnanet.core.graph import NetworkGraph
from cnanet.enrichment.functional_sets import FunctionalSetUniverse
from cnanet.enrichment.null_models import BipartiteSwapGenerator, Edge, RandomGraphGenerator
from cnanet.exceptions import StatisticalWarning, ValidationError
from cnanet.utils.fileio import atomic_write_json, read_json
from cnanet.utils.parallel import run_units
from cnanet.utils.seeding import resolve_seed, spawn_seeds

logger = logging.getLogger(__name__)

__all__ = [
    'go_neighbor_proportion',
    'NeighborhoodEnrichment',
    'NeighborhoodResult',
]


def go_neighbor_proportion(
    neighbors: Sequence[str],
    term_index: Mapping[str, frozenset],
) -> Optional[float]:
    """
    Fraction of neighbour pairs sharing at least one functional set.

    Unannotated neighbours count towards the pair total but never share a
    term. Returns None when fewer than two neighbours.
    """
    neighbors = list(dict.fromkeys(neighbors))
    n = len(neighbors)
    if n < 2:
        return None

    annotated = [term_index[x] for x in neighbors if x in term_index]
    if len(annotated) < 2:
        return 0.0

    terms = sorted(set().union(*annotated))
    column = {t: j for j, t in enumerate(terms)}
    rows = [i for i, ts in enumerate(annotated) for _ in ts]
    cols = [column[t] for ts in annotated for t in ts]
    membership = sparse.csr_matrix(
        (np.ones(len(rows), dtype=np.int32), (rows, cols)),
        shape=(len(annotated), len(terms)),
    )
    shared = sparse.triu(membership @ membership.T, k=1)
    n_shared_pairs = int((shared > 0).sum())
    return n_shared_pairs / (n * (n - 1) / 2)


def _neighborhoods(edges: Sequence[Edge], hubs: Sequence[str]) -> Dict[str, List[str]]:
    out: Dict[str, List[str]] = {h: [] for h in hubs}
    for p, r in edges:
        if p in out:
            out[p].append(r)
    return out


def _mean_proportion(edges: Sequence[Edge], hubs: Sequence[str], term_index) -> float:
    values = [
        go_neighbor_proportion(neighbors, term_index)
        for neighbors in _neighborhoods(edges, hubs).values()
    ]
    values = [v for v in values if v is not None]
    return float(np.mean(values)) if values else float('nan')


def _null_trial(unit: Tuple[int, int, RandomGraphGenerator, List[Edge], List[str], Dict]) -> float:
    """One null trial (worker-pool unit): randomise, then score."""
    _, seed, generator, edges, hubs, term_index = unit
    return _mean_proportion(generator.generate(edges, seed), hubs, term_index)


@dataclass
class NeighborhoodResult:
    """
    Attributes:
        proportions: Hub id → observed proportion (scored hubs only)
        observed_mean: Mean proportion over scored hubs (None if none scored)
        null_values: Mean proportion per completed trial, in trial order
        null_mean, null_sd, z_score, empirical_p: Null summary (None when
            undefined)
        seed: Root seed actually used
        n_trials: Trials requested
        generator: Null generator name
        skipped: (hub id, reason) for hubs that could not be scored
    """
    proportions: Dict[str, float] = field(default_factory=dict)
    observed_mean: Optional[float] = None
    null_values: List[float] = field(default_factory=list)
    null_mean: Optional[float] = None
    null_sd: Optional[float] = None
    z_score: Optional[float] = None
    empirical_p: Optional[float] = None
    seed: Optional[int] = None
    n_trials: int = 0
    generator: str = ''
    skipped: List[Tuple[str, str]] = field(default_factory=list)

    def records(self, graph: Optional[NetworkGraph] = None) -> List[Dict[str, Any]]:
        return [
            {
                'id': hub,
                'alias': graph.nodes[hub].alias if graph is not None else hub,
                'proportion': value,
            }
            for hub, value in self.proportions.items()
        ]

    def summary(self) -> Dict[str, Any]:
        return {
            'n_hubs_scored': len(self.proportions),
            'n_hubs_skipped': len(self.skipped),
            'observed_mean': self.observed_mean,
            'null_mean': self.null_mean,
            'null_sd': self.null_sd,
            'z_score': self.z_score,
            'empirical_p': self.empirical_p,
            'n_trials': self.n_trials,
            'seed': self.seed,
            'generator': self.generator,
        }


class NeighborhoodEnrichment:
    """
    Observed vs. null GO-neighbour proportion for hub neighbourhoods.

    Attributes:
        generator: RandomGraphGenerator (BipartiteSwapGenerator by default)
        n_trials: Null trials T
        seed: Root seed; None draws one and logs it
        n_jobs: Worker processes for trials
        checkpoint_path: JSON checkpoint to write/resume (None disables)
        checkpoint_every: Completed trials between checkpoint writes
    """

    def __init__(
        self,
        generator: Optional[RandomGraphGenerator] = None,
        n_trials: int = 100,
        seed: Optional[int] = None,
        n_jobs: int = 1,
        checkpoint_path: Optional[str | os.PathLike] = None,
        checkpoint_every: int = 1,
        progress: bool = False,
    ):
        if n_trials < 0:
            raise ValidationError(f"n_trials must be non-negative, got {n_trials}")
        if checkpoint_every < 1:
            raise ValidationError(f"checkpoint_every must be >= 1, got {checkpoint_every}")
        self.generator = generator if generator is not None else BipartiteSwapGenerator()
        self.n_trials = n_trials
        self.seed = seed
        self.n_jobs = n_jobs
        self.checkpoint_path = Path(checkpoint_path) if checkpoint_path is not None else None
        self.checkpoint_every = checkpoint_every
        self.progress = progress

    # ------------------------------------------------------------------
    # Checkpointing
    # ------------------------------------------------------------------

    def _load_checkpoint(self, seed: int, hubs: List[str]) -> Dict[int, float]:
        if self.checkpoint_path is None or not self.checkpoint_path.exists():
            return {}
        state = read_json(self.checkpoint_path)
        if state.get('seed') != seed:
            raise ValidationError(
                f"Checkpoint {self.checkpoint_path} was written with seed {state.get('seed')}, "
                f"this run uses {seed}"
            )
        if state.get('hubs') != hubs:
            raise ValidationError(f"Checkpoint {self.checkpoint_path} was written for a different hub set")
        if state.get('generator') not in (None, self.generator.name):
            raise ValidationError(
                f"Checkpoint {self.checkpoint_path} was written with generator {state.get('generator')}"
            )
        completed = {
            int(k): (float('nan') if v is None else float(v))
            for k, v in state.get('completed', {}).items()
            if int(k) < self.n_trials
        }
        logger.warning(f"Resuming from checkpoint {self.checkpoint_path}: {len(completed)} trials done")
        return completed

    def _write_checkpoint(self, seed: int, hubs: List[str], completed: Dict[int, float]) -> None:
        atomic_write_json(self.checkpoint_path, {
            'seed': seed,
            'n_trials': self.n_trials,
            'generator': self.generator.name,
            'hubs': hubs,
            'completed': {
                str(k): (None if np.isnan(v) else v) for k, v in sorted(completed.items())
            },
        })

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(
        self,
        graph: NetworkGraph,
        universe: FunctionalSetUniverse,
        hubs: Optional[Sequence[str]] = None,
    ) -> NeighborhoodResult:
        """
        Score hub neighbourhoods and build the null distribution.

        Args:
            graph: Network; only x-y edges are used
            universe: Functional sets
            hubs: Predictor ids to score (all predictors by default)
        """
        hubs = list(graph.node_ids('x') if hubs is None else [str(h) for h in hubs])
        not_predictors = [h for h in hubs if h not in graph.nodes or graph.nodes[h].level != 'x']
        if not_predictors:
            raise ValidationError(f"Hubs must be predictor nodes: {not_predictors[:5]}")

        edges: List[Edge] = [(e.source, e.target) for e in graph.edges_at_level('x-y')]
        term_index = universe.term_index(graph.node_ids('y'))
        result = NeighborhoodResult(n_trials=self.n_trials, generator=self.generator.name)

        if not term_index and hubs:
            logger.warning("No response node carries a functional annotation; neighbourhood scores are all 0")

        for hub, neighbors in _neighborhoods(edges, hubs).items():
            if len(neighbors) < 2:
                warnings.warn(
                    f"Hub {hub} has {len(neighbors)} response neighbour(s); proportion undefined, skipped",
                    StatisticalWarning,
                )
                result.skipped.append((hub, 'neighbourhood size < 2'))
                continue
            if not any(n in term_index for n in neighbors):
                warnings.warn(
                    f"Hub {hub} has no annotated response neighbours; skipped",
                    StatisticalWarning,
                )
                result.skipped.append((hub, 'no annotated neighbours'))
                continue
            result.proportions[hub] = go_neighbor_proportion(neighbors, term_index)

        if not result.proportions:
            logger.info("Neighbourhood enrichment: no hub could be scored")
            return result

        result.observed_mean = float(np.mean(list(result.proportions.values())))
        if self.n_trials == 0:
            return result

        scored = list(result.proportions)
        seed = resolve_seed(self.seed, "Neighbourhood null model")
        result.seed = seed
        trial_seeds = spawn_seeds(seed, self.n_trials)

        completed = self._load_checkpoint(seed, scored)
        pending = [t for t in range(self.n_trials) if t not in completed]
        units = [(t, trial_seeds[t], self.generator, edges, scored, term_index) for t in pending]

        since_write = 0

        def on_result(i: int, value: float) -> None:
            nonlocal since_write
            completed[pending[i]] = value
            since_write += 1
            if self.checkpoint_path is not None and since_write >= self.checkpoint_every:
                self._write_checkpoint(seed, scored, completed)
                since_write = 0

        run_units(
            _null_trial,
            units,
            n_jobs=self.n_jobs,
            on_result=on_result,
            progress=self.progress,
            desc="Null trials",
        )
        if self.checkpoint_path is not None and since_write:
            self._write_checkpoint(seed, scored, completed)

        result.null_values = [completed[t] for t in range(self.n_trials)]
        null = np.array([v for v in result.null_values if not np.isnan(v)])
        if len(null):
            result.null_mean = float(null.mean())
            result.null_sd = float(null.std(ddof=1)) if len(null) > 1 else 0.0
            if result.null_sd > 0:
                result.z_score = (result.observed_mean - result.null_mean) / result.null_sd
            result.empirical_p = float((1 + np.sum(null >= result.observed_mean)) / (len(null) + 1))

        logger.info(
            f"Neighbourhood enrichment: {len(scored)} hubs, observed mean {result.observed_mean:.4f}, "
            f"null mean {result.null_mean} over {len(null)} trials ({self.generator.name}), "
            f"p={result.empirical_p}"
        )
        return result
