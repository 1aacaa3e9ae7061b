"""
Partner Share Distribution

Partners on a project share its final amount by percentage. Whatever is
left below 100% stays with the owner.

IMPORTANT: Share totals above 100% are rejected, never clamped. Clamping
would silently hand one partner's money to another.

Payouts are advisory: nothing here moves money.
"""

from decimal import ROUND_DOWN, Decimal
from typing import Iterable, Optional

from pydantic import BaseModel

from freelance_ledger.calculations.waterfall import HUNDRED, ZERO, Number, to_decimal
from freelance_ledger.errors import NoRemainingShareError, PartnerShareError
from freelance_ledger.models.ledger import (
    Partner,
    PartnerPayout,
    PartnerStatus,
    ProjectPartner,
)


SHARE_PRECISION = Decimal("0.0001")


class ShareValidation(BaseModel):
    """Outcome of checking a partner list's share total."""

    ok: bool
    total: Decimal
    remaining: Decimal

    @property
    def status(self) -> str:
        return "ok" if self.ok else "exceeds100"


def total_share(partners: Iterable[ProjectPartner]) -> Decimal:
    return sum((p.share_percent for p in partners), ZERO)


def validate_shares(partners: Iterable[ProjectPartner]) -> ShareValidation:
    """Check that share percentages sum to at most 100."""
    total = total_share(partners)
    return ShareValidation(
        ok=total <= HUNDRED,
        total=total,
        remaining=max(HUNDRED - total, ZERO),
    )


def ensure_valid_shares(partners: Iterable[ProjectPartner]) -> ShareValidation:
    """validate_shares(), raising PartnerShareError when the total exceeds 100."""
    result = validate_shares(partners)
    if not result.ok:
        raise PartnerShareError(result.total)
    return result


def distribute(
    final_amount: Number,
    partners: Iterable[ProjectPartner],
) -> list[PartnerPayout]:
    """
    Compute each partner's payout from the project's final amount.

    The payouts sum to final_amount * total_share / 100.
    """
    base = max(to_decimal(final_amount), ZERO)
    return [
        PartnerPayout(
            partner_id=p.partner_id,
            name=p.name,
            share_percent=p.share_percent,
            amount=base * p.share_percent / HUNDRED,
        )
        for p in partners
    ]


def add_partner(
    existing: list[ProjectPartner],
    partner: Partner,
    share_percent: Number,
    replace_entry_id: Optional[str] = None,
) -> list[ProjectPartner]:
    """
    Attach one partner to a project's partner list.

    When replace_entry_id is given, that entry is edited in place and its
    old share does not count toward the headroom.

    Returns:
        The updated partner list (the input list is not modified)

    Raises:
        PartnerShareError: share is out of range or the total would exceed 100
    """
    share = to_decimal(share_percent)
    if share <= ZERO or share > HUNDRED:
        raise PartnerShareError(
            share,
            f"Share percentage must be between 0 and 100, got {share}",
        )

    others = [p for p in existing if p.entry_id != replace_entry_id]
    current = total_share(others)
    if current + share > HUNDRED:
        raise PartnerShareError(
            current + share,
            f"Total share percentage cannot exceed 100%. Current total: {current}%",
        )

    entry = ProjectPartner(
        partner_id=partner.id,
        name=partner.name,
        share_percent=share,
    )
    if replace_entry_id is None:
        return [*existing, entry]

    entry = entry.model_copy(update={"entry_id": replace_entry_id})
    return [entry if p.entry_id == replace_entry_id else p for p in existing]


def split_remaining_share(
    existing: list[ProjectPartner],
    candidates: Iterable[Partner],
) -> list[ProjectPartner]:
    """
    "Add all" partners: divide the remaining headroom evenly.

    Inactive candidates and candidates already on the project are skipped.
    Shares are rounded down to SHARE_PRECISION and the rounding remainder
    goes to the last new partner, so the total lands on exactly 100.

    Raises:
        NoRemainingShareError: no headroom left, or nobody left to add
    """
    present = {p.partner_id for p in existing if p.partner_id}
    newcomers = [
        c for c in candidates
        if c.status == PartnerStatus.ACTIVE and c.id not in present
    ]
    if not newcomers:
        raise NoRemainingShareError(
            total_share(existing),
            "All active partners are already added to this project",
        )

    current = total_share(existing)
    remaining = HUNDRED - current
    if remaining <= ZERO:
        raise NoRemainingShareError(
            current,
            f"No remaining share percentage available. Current total: {current}%",
        )

    each = (remaining / len(newcomers)).quantize(SHARE_PRECISION, rounding=ROUND_DOWN)
    shares = [each] * len(newcomers)
    shares[-1] = remaining - each * (len(newcomers) - 1)

    added = [
        ProjectPartner(partner_id=c.id, name=c.name, share_percent=share)
        for c, share in zip(newcomers, shares)
    ]
    return [*existing, *added]
