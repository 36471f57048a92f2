"""
Structural interfaces shared by the fitting backends.

Protocol (structural typing) rather than ABC: a backend only has to look
like one, which keeps the optional GPU backend free of imports from the
CPU side.
"""

from typing import Protocol, TypeVar, runtime_checkable

from pyregselect.core.result import Result

P = TypeVar('P', covariant=True)  # Parameter payload type


@runtime_checkable
class Backend(Protocol[P]):
    """
    A computational backend: takes a regression Design, returns a Result.

    Backends are stateless apart from construction-time configuration
    (device, precision), so they can be swapped freely.
    """

    @property
    def name(self) -> str:
        """
        Backend identifier.

        Convention: '{device}_{algorithm}', e.g. 'cpu_qr', 'cpu_irls',
        'gpu_qr_fp32'.
        """
        ...

    def solve(self, design) -> Result[P]:
        """
        Fit the model described by `design`.

        Raises:
            NumericalError: If numerical issues prevent a solution
            ValidationError: If the design is invalid for this backend
        """
        ...
