"""
Functional-set universe (GO terms, pathways) used for enrichment.

Sets come from an external annotation query and are size-bounded: terms
with fewer than ``min_size`` members are too specific to test with any
power, and terms with more than ``max_size`` members are too generic to
be informative. The default bounds are [15, 300].

``FunctionalSetUniverse`` validates the bounds; ``from_mapping`` filters
an unbounded mapping down to them first.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Iterator, List, Mapping, Optional, Set

from cnanet.exceptions import ValidationError

logger = logging.getLogger(__name__)

__all__ = [
    'FunctionalSet',
    'FunctionalSetUniverse',
    'DEFAULT_MIN_SET_SIZE',
    'DEFAULT_MAX_SET_SIZE',
]

DEFAULT_MIN_SET_SIZE = 15
DEFAULT_MAX_SET_SIZE = 300


@dataclass(frozen=True)
class FunctionalSet:
    """A curated group of feature ids sharing a biological role."""
    term_id: str
    members: FrozenSet[str]
    name: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'term_id', str(self.term_id))
        object.__setattr__(self, 'members', frozenset(str(m) for m in self.members))

    def __len__(self) -> int:
        return len(self.members)


class FunctionalSetUniverse:
    """
    Ordered, size-bounded collection of functional sets with an inverted
    id → terms index.

    Raises:
        ValidationError: Duplicate term ids, or a set outside [min_size, max_size]
    """

    def __init__(
        self,
        sets: Iterable[FunctionalSet],
        min_size: int = DEFAULT_MIN_SET_SIZE,
        max_size: int = DEFAULT_MAX_SET_SIZE,
    ):
        if min_size < 1 or max_size < min_size:
            raise ValidationError(f"Invalid set size bounds [{min_size}, {max_size}]")
        self.min_size = min_size
        self.max_size = max_size

        self._sets: Dict[str, FunctionalSet] = {}
        for fs in sets:
            if fs.term_id in self._sets:
                raise ValidationError(f"Duplicate functional set {fs.term_id!r}")
            if not (min_size <= len(fs) <= max_size):
                raise ValidationError(
                    f"Functional set {fs.term_id!r} has {len(fs)} members, "
                    f"outside bounds [{min_size}, {max_size}]"
                )
            self._sets[fs.term_id] = fs

        self._terms_by_id: Dict[str, Set[str]] = {}
        for fs in self._sets.values():
            for member in fs.members:
                self._terms_by_id.setdefault(member, set()).add(fs.term_id)

    @classmethod
    def from_mapping(
        cls,
        mapping: Mapping[str, Iterable[str]],
        min_size: int = DEFAULT_MIN_SET_SIZE,
        max_size: int = DEFAULT_MAX_SET_SIZE,
        names: Optional[Mapping[str, str]] = None,
    ) -> FunctionalSetUniverse:
        """Build from term → members, dropping sets outside the size bounds."""
        names = names or {}
        kept = []
        n_dropped = 0
        for term_id, members in mapping.items():
            fs = FunctionalSet(term_id=term_id, members=frozenset(members), name=names.get(term_id))
            if min_size <= len(fs) <= max_size:
                kept.append(fs)
            else:
                n_dropped += 1
        logger.info(
            f"Functional universe: kept {len(kept)}/{len(kept) + n_dropped} sets "
            f"within [{min_size}, {max_size}] members"
        )
        return cls(kept, min_size=min_size, max_size=max_size)

    def __len__(self) -> int:
        return len(self._sets)

    def __iter__(self) -> Iterator[FunctionalSet]:
        return iter(self._sets.values())

    def __contains__(self, term_id: str) -> bool:
        return term_id in self._sets

    def __getitem__(self, term_id: str) -> FunctionalSet:
        return self._sets[term_id]

    @property
    def term_ids(self) -> List[str]:
        return list(self._sets)

    @property
    def annotated_ids(self) -> Set[str]:
        """Every feature id that belongs to at least one set."""
        return set(self._terms_by_id)

    def terms_for(self, feature_id: str) -> Set[str]:
        return set(self._terms_by_id.get(feature_id, ()))

    def term_index(self, ids: Optional[Iterable[str]] = None) -> Dict[str, FrozenSet[str]]:
        """Feature id → term ids, restricted to ``ids`` and to annotated ids."""
        keys = self._terms_by_id if ids is None else [i for i in ids if i in self._terms_by_id]
        return {i: frozenset(self._terms_by_id[i]) for i in keys}

    def __repr__(self) -> str:
        return (
            f"FunctionalSetUniverse(sets={len(self)}, annotated_ids={len(self._terms_by_id)}, "
            f"bounds=[{self.min_size}, {self.max_size}])"
        )
