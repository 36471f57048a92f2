"""
Generic result envelope for every fitted model and diagnostic.

Domain modules define their own frozen parameter payloads; the envelope
carries the metadata they share: what method ran, how long it took,
which backend produced it, and any non-fatal warnings.
"""

from dataclasses import dataclass, field
from typing import TypeVar, Generic, Any

P = TypeVar('P')  # Parameter payload type


@dataclass(frozen=True)
class Result(Generic[P]):
    """
    Immutable result envelope.

    Attributes:
        params: Domain-specific payload (coefficients, tables, ...)
        info: Structured metadata (method, rank, n_dropped, convergence)
        timing: Section timings from Timer, or None if not measured
        backend_name: Identifier of the backend, e.g. 'cpu_qr', 'cpu_irls'
        warnings: Non-fatal issues encountered during computation

    Examples:
        >>> Result(
        ...     params=LinearParams(...),
        ...     info={'method': 'qr', 'rank': 5, 'n_dropped': 0},
        ...     timing={'total_seconds': 0.01},
        ...     backend_name='cpu_qr',
        ... )
    """
    params: P
    info: dict[str, Any]
    timing: dict[str, float] | None
    backend_name: str
    warnings: tuple[str, ...] = field(default_factory=tuple)

    def has_warning(self, substring: str) -> bool:
        """Check if any warning contains the given substring."""
        return any(substring in w for w in self.warnings)
