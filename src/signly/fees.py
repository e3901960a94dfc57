"""Registration fee checks.

Creating a document may cost a fee. Signly doesn't move money: it asks a
``FeeCheck`` whether the caller's fee proof is acceptable, and deployments
wire that to their own billing. ``NoFeeCheck`` accepts everything.
"""

from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from typing import Any

from .errors import InsufficientFee
from .models import Identity


class FeeCheck(ABC):
    """Capability invoked by ``create_document`` before anything is stored."""

    @abstractmethod
    def check(self, caller: Identity, fee_proof: Any) -> None:
        """Raise InsufficientFee if ``fee_proof`` doesn't cover the fee."""


class NoFeeCheck(FeeCheck):
    def check(self, caller: Identity, fee_proof: Any) -> None:
        return None


class MinimumFeeCheck(FeeCheck):
    """Require an attached amount of at least ``minimum``.

    The fee proof is the attached amount itself: a number or a numeric
    string, in whatever unit ``minimum`` is expressed in.
    """

    def __init__(self, minimum: Decimal) -> None:
        self.minimum = Decimal(minimum)

    def check(self, caller: Identity, fee_proof: Any) -> None:
        try:
            attached = Decimal(str(fee_proof)) if fee_proof is not None else Decimal(0)
        except InvalidOperation as exc:
            raise InsufficientFee(
                f"Unreadable fee attached by {caller}: {fee_proof!r}"
            ) from exc
        if attached.is_nan() or attached < self.minimum:
            raise InsufficientFee(
                f"A minimum fee of {self.minimum} must be attached per document"
            )


def fee_check_for(minimum: Decimal) -> FeeCheck:
    """NoFeeCheck for a zero minimum, MinimumFeeCheck otherwise."""
    if Decimal(minimum) <= 0:
        return NoFeeCheck()
    return MinimumFeeCheck(minimum)
