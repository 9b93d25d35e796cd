"""
Over-representation tests with multiple testing correction.

Statistical Methods:
    Hypergeometric Test (default):
        - Tests: "Given N annotated responses, M in the functional set,
          a module holding n of them, k of which are in the set"
        - Null: the module is a random draw from the population
        - One-sided (enrichment, not depletion): P(X >= k)
        - Exact p-values

Multiple Testing Correction:
    Every (module, functional set) pair is one hypothesis. Raw p-values from
    all pairs are pooled and Benjamini-Hochberg adjusted in one pass, so the
    adjusted values are monotone in raw p-value rank.

Examples:
    >>> test = HypergeometricTest()
    >>> result = test.test_enrichment(
    ...     sample={'P1', 'P2', 'P3'},
    ...     functional_set={'P1', 'P2', 'P9'},
    ...     population=annotated_responses,
    ... )
    >>> reject, padj = apply_fdr_correction([result.pvalue, 0.2, 0.8])
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Set, Tuple

import numpy as np
from scipy.stats import hypergeom
from statsmodels.stats.multitest import multipletests

from cnanet.exceptions import ValidationError

__all__ = [
    'EnrichmentResult',
    'EnrichmentTest',
    'HypergeometricTest',
    'apply_fdr_correction',
]


@dataclass
class EnrichmentResult:
    """
    Result of one over-representation test.

    Attributes:
        pvalue: Raw one-sided p-value
        overlap: Observed successes (sample ∩ set)
        set_size: Successes in the population (set ∩ population)
        sample_size: Draws (sample ∩ population)
        population_size: Population size
        expected: Overlap expected under random sampling
        enrichment_ratio: overlap / expected (0 when nothing is expected)
    """
    pvalue: float
    overlap: int
    set_size: int
    sample_size: int
    population_size: int
    expected: float
    enrichment_ratio: float


class EnrichmentTest(ABC):
    """
    Pluggable over-representation test.

    Implementations receive plain id sets; both sample and set are
    intersected with the population before testing.
    """

    @abstractmethod
    def test_enrichment(
        self,
        sample: Set[str],
        functional_set: Set[str],
        population: Set[str],
    ) -> EnrichmentResult:
        """Test whether ``sample`` is enriched for ``functional_set``."""
        pass


class HypergeometricTest(EnrichmentTest):
    """
    One-sided hypergeometric test.

    Statistical Model:
        X ~ Hypergeometric(N, M, n); p = P(X >= k) = sf(k - 1)

    A module identical to a functional set gets the smallest p-value the
    population allows, 1 / C(N, M).
    """

    def test_enrichment(
        self,
        sample: Set[str],
        functional_set: Set[str],
        population: Set[str],
    ) -> EnrichmentResult:
        sample = set(sample) & population
        functional_set = set(functional_set) & population

        N = len(population)
        M = len(functional_set)
        n = len(sample)
        k = len(sample & functional_set)

        if N == 0 or n == 0 or M == 0:
            return EnrichmentResult(
                pvalue=1.0,
                overlap=k,
                set_size=M,
                sample_size=n,
                population_size=N,
                expected=0.0,
                enrichment_ratio=0.0,
            )

        expected = n * M / N
        pvalue = hypergeom.sf(k - 1, N, M, n)

        return EnrichmentResult(
            pvalue=float(min(1.0, max(0.0, pvalue))),
            overlap=k,
            set_size=M,
            sample_size=n,
            population_size=N,
            expected=float(expected),
            enrichment_ratio=float(k / expected),
        )


def apply_fdr_correction(
    pvalues: List[float],
    method: str = 'fdr_bh',
    alpha: float = 0.05,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Apply multiple testing correction to p-values.

    Args:
        pvalues: Raw p-values
        method: statsmodels ``multipletests`` method ('fdr_bh' by default)
        alpha: FDR threshold; ``reject`` marks adjusted values <= alpha

    Returns:
        Tuple of (reject, padj)

    Raises:
        ValidationError: NaN/Inf or out-of-range p-values, alpha outside (0, 1]
    """
    if not 0 < alpha <= 1:
        raise ValidationError(f"FDR threshold must be in (0, 1], got {alpha}")
    if len(pvalues) == 0:
        return np.array([], dtype=bool), np.array([])

    pvalues = np.asarray(pvalues, dtype=np.float64)
    if np.any(~np.isfinite(pvalues)):
        raise ValidationError("p-values contain NaN or Inf")
    if np.any(pvalues < 0) or np.any(pvalues > 1):
        raise ValidationError("p-values must be in [0, 1]")

    _, padj, _, _ = multipletests(pvalues, alpha=alpha, method=method, returnsorted=False)
    reject = padj <= alpha
    return reject, padj
