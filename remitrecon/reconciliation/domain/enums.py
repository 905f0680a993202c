"""Enumerations for the reconciliation domain."""

from enum import Enum


class ClaimType(Enum):
    """Claim category encoded as a marker inside the sub-invoice number."""

    SHORTAGE = "SC"  # Shortage claim
    PRICE = "PC"  # Price claim

    @property
    def marker(self) -> str:
        return self.value


class SkipReason(Enum):
    """Why a payment left the engine without a match attempt succeeding."""

    NOT_A_CLAIM = "not_a_claim"  # sub-invoice carries no (or both) markers
    NO_CANDIDATES = "no_candidates"  # no unmapped deduction under its key
    AMBIGUOUS_GROUP = "ambiguous_group"  # duplicate deduction amounts under its key
    NO_ELIGIBLE_DEDUCTION = "no_eligible_deduction"  # candidates tried, none committed
