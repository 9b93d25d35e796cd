"""
Functional over-representation within network modules.

For every (qualifying module, functional set) pair:

    population  = response nodes carrying any functional annotation
    set_size    = |set ∩ population|
    sample_size = |module ∩ population|
    overlap     = |module ∩ set ∩ population|

Raw p-values across all pairs are Benjamini-Hochberg adjusted together and
pairs with padj <= fdr are reported as significant. Response nodes in the
overlap of a significant pair are tagged with the term id.

Sets without any population member cannot be tested; each raises one
StatisticalWarning, is listed in ``skipped`` and the rest of the run
continues. The same applies to modules without annotated responses.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from cnanet.core.graph import NetworkGraph
from cnanet.enrichment.functional_sets import FunctionalSetUniverse
from cnanet.enrichment.hypergeometric import EnrichmentTest, HypergeometricTest, apply_fdr_correction
from cnanet.exceptions import StatisticalWarning, ValidationError
from cnanet.network.modules import ModuleResult

logger = logging.getLogger(__name__)

__all__ = ['ModuleEnrichment', 'ModuleEnrichmentResult', 'RECORD_COLUMNS']

RECORD_COLUMNS = [
    'module', 'term', 'term_name', 'population_size', 'set_size', 'sample_size',
    'overlap', 'expected', 'enrichment_ratio', 'pvalue', 'padj', 'significant', 'members',
]


@dataclass
class ModuleEnrichmentResult:
    """
    Attributes:
        records: Every tested pair, sorted by (padj, pvalue, module, term)
        fdr: Threshold used
        skipped: (kind, id, reason) for every untested module or set
    """
    records: List[Dict[str, Any]] = field(default_factory=list)
    fdr: float = 0.05
    skipped: List[Tuple[str, str, str]] = field(default_factory=list)

    @property
    def n_tests(self) -> int:
        return len(self.records)

    @property
    def significant(self) -> List[Dict[str, Any]]:
        return [r for r in self.records if r['significant']]

    def to_frame(self, significant_only: bool = False) -> pd.DataFrame:
        rows = self.significant if significant_only else self.records
        return pd.DataFrame(rows, columns=RECORD_COLUMNS)


class ModuleEnrichment:
    """
    Attributes:
        test: EnrichmentTest implementation (hypergeometric by default)
        fdr: Benjamini-Hochberg threshold, inclusive
    """

    def __init__(self, test: Optional[EnrichmentTest] = None, fdr: float = 0.05):
        if not 0 < fdr <= 1:
            raise ValidationError(f"fdr must be in (0, 1], got {fdr}")
        self.test = test if test is not None else HypergeometricTest()
        self.fdr = fdr

    def run(
        self,
        graph: NetworkGraph,
        modules: ModuleResult,
        universe: FunctionalSetUniverse,
        annotate: bool = True,
    ) -> ModuleEnrichmentResult:
        result = ModuleEnrichmentResult(fdr=self.fdr)

        population = set(graph.node_ids('y')) & universe.annotated_ids
        if not population:
            if len(universe) and graph.node_ids('y'):
                logger.warning("No response node carries a functional annotation; module enrichment skipped")
            return result

        set_members = {}
        for fs in universe:
            in_population = fs.members & population
            if not in_population:
                warnings.warn(
                    f"Functional set {fs.term_id} has no members among the network's responses; skipped",
                    StatisticalWarning,
                )
                result.skipped.append(('term', fs.term_id, 'empty intersection with population'))
                continue
            set_members[fs.term_id] = in_population

        pairs = []
        for module_id, members in modules.qualifying.items():
            sample = set(members) & population
            if not sample:
                warnings.warn(
                    f"Module {module_id} has no annotated responses; skipped",
                    StatisticalWarning,
                )
                result.skipped.append(('module', str(module_id), 'no annotated responses'))
                continue
            for term_id, in_population in set_members.items():
                res = self.test.test_enrichment(sample, in_population, population)
                pairs.append((module_id, term_id, res, sorted(sample & in_population)))

        if not pairs:
            logger.info("Module enrichment: nothing to test")
            return result

        reject, padj = apply_fdr_correction([p[2].pvalue for p in pairs], alpha=self.fdr)
        for (module_id, term_id, res, overlap_ids), sig, q in zip(pairs, reject, padj):
            result.records.append({
                'module': module_id,
                'term': term_id,
                'term_name': universe[term_id].name,
                'population_size': res.population_size,
                'set_size': res.set_size,
                'sample_size': res.sample_size,
                'overlap': res.overlap,
                'expected': res.expected,
                'enrichment_ratio': res.enrichment_ratio,
                'pvalue': res.pvalue,
                'padj': float(q),
                'significant': bool(sig),
                'members': overlap_ids,
            })
        result.records.sort(key=lambda r: (r['padj'], r['pvalue'], r['module'], r['term']))

        if annotate:
            tags: Dict[str, set] = {}
            for record in result.significant:
                for node_id in record['members']:
                    tags.setdefault(node_id, set()).add(record['term'])
            for node_id, terms in tags.items():
                existing = set(graph.nodes[node_id].functional_terms)
                graph.annotate_node(node_id, functional_terms=sorted(existing | terms))

        logger.info(
            f"Module enrichment: {result.n_tests} tests over {len(modules.qualifying)} modules, "
            f"{len(result.significant)} significant at FDR <= {self.fdr}"
        )
        return result
