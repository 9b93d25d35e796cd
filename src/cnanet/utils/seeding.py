"""
Seed handling for stochastic steps.

Every stochastic operation takes an explicit seed. A missing seed is not an
error, but it is flagged: a fresh seed is drawn from OS entropy and logged
at WARNING level so the run can still be replayed.
"""

from __future__ import annotations

import logging
from typing import List, Optional

import numpy as np

logger = logging.getLogger(__name__)

__all__ = ['resolve_seed', 'spawn_seeds']


def resolve_seed(seed: Optional[int], context: str) -> int:
    """Return ``seed`` (logged) or a freshly drawn one (logged as a warning)."""
    if seed is None:
        seed = int(np.random.SeedSequence().entropy % (2**63))
        logger.warning(
            f"{context}: no seed supplied; drew seed={seed} from OS entropy. "
            f"Pass this seed to reproduce the run."
        )
    else:
        seed = int(seed)
        logger.info(f"{context}: seed={seed}")
    return seed


def spawn_seeds(seed: int, n: int) -> List[int]:
    """Independent per-unit seeds derived from one root seed."""
    children = np.random.SeedSequence(seed).spawn(n)
    return [int(child.generate_state(1, dtype=np.uint64)[0] % (2**63)) for child in children]
