"""
Error and warning classes shared across the pipeline.

Fatal problems abort the current operation:
    ValidationError     - schema mismatch, duplicate ids, dimension mismatch,
                          invalid parameters
    DataIntegrityError  - inputs that are well-formed but contradict each
                          other (overlapping intervals inside a collapsed
                          cluster, adjacency labels with no attribute row)

Non-fatal problems skip the affected unit and are reported with
StatisticalWarning through ``warnings.warn``.
"""

__all__ = [
    'ValidationError',
    'DataIntegrityError',
    'StatisticalWarning',
]


class ValidationError(ValueError):
    """Raised when inputs violate the expected schema, shape or parameter bounds."""
    pass


class DataIntegrityError(ValidationError):
    """Raised when inputs reference each other inconsistently."""
    pass


class StatisticalWarning(UserWarning):
    """Issued when a statistical unit cannot be evaluated and is skipped."""
    pass
