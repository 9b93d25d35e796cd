"""Shared argparse type validators for CLI parameter bounds checking.

Used as the ``type=`` argument in ``add_argument()`` so that values such
as ``--fdr 2.0`` or ``--min-pts 0`` fail at parse time with a clear message.
"""

from __future__ import annotations

import argparse


def _positive_int(value: str) -> int:
    """argparse type for positive integers (> 0)."""
    ivalue = int(value)
    if ivalue <= 0:
        raise argparse.ArgumentTypeError(f"{value} is not a positive integer")
    return ivalue


def _non_negative_int(value: str) -> int:
    """argparse type for integers >= 0."""
    ivalue = int(value)
    if ivalue < 0:
        raise argparse.ArgumentTypeError(f"{value} is not a non-negative integer")
    return ivalue


def _non_negative_float(value: str) -> float:
    """argparse type for floats >= 0."""
    fvalue = float(value)
    if fvalue < 0:
        raise argparse.ArgumentTypeError(f"{value} is not a non-negative float")
    return fvalue


def _fdr_threshold(value: str) -> float:
    """argparse type for thresholds in the half-open interval (0, 1]."""
    fvalue = float(value)
    if not (0 < fvalue <= 1):
        raise argparse.ArgumentTypeError(
            f"{value} is not a valid FDR threshold (must be in (0, 1])"
        )
    return fvalue


def _n_jobs(value: str) -> int:
    """argparse type for worker counts: positive, or negative to count back from the CPU total."""
    ivalue = int(value)
    if ivalue == 0:
        raise argparse.ArgumentTypeError("n-jobs must be non-zero (use -1 for all CPUs)")
    return ivalue
