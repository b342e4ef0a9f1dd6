"""
Error taxonomy for the enhancer-network pipeline.

- InvalidConfiguration: unsupported genome build or out-of-range thresholds.
  Raised before any matrix is touched.
- InputContractViolation: the inputs disagree with each other (cell axes,
  zero-coverage peaks at the scorer, nothing to test).
- WorkerFailure: one per-gene work item failed; the batch is aborted.

A gene without a valid enhancer network is not an error. It is simply absent
from the network collection.
"""

from typing import Any, Hashable


class EnetError(Exception):
    """Base class for all pipeline errors."""


class InvalidConfiguration(EnetError, ValueError):
    """A configuration value is unsupported or out of range."""


class InputContractViolation(EnetError, ValueError):
    """Input matrices or tables violate a required invariant."""


class WorkerFailure(EnetError, RuntimeError):
    """
    A parallel work item failed.

    Attributes
    ----------
    key : hashable
        Work item (gene) whose computation raised.
    """

    def __init__(self, key: Hashable, error: BaseException):
        self.key = key
        self.error = error
        super().__init__(
            f"Work item {key!r} failed: {type(error).__name__}: {error}"
        )

    def __reduce__(self) -> Any:
        return (type(self), (self.key, self.error))
