"""
Split Calculator

Turns an expense amount and a split policy into per-member owed amounts.

Only the equal split guarantees an exact sum. Percentage and share splits
round each member independently and may drift a cent or two from the
amount; call `apply_remainder_fix` before treating them as final.
Unequal splits are passed through as given and must be validated.
"""

from decimal import Decimal
from typing import Mapping, Optional

from groupledger.models.ledger import ExpenseSplit, SplitType
from groupledger.money import CENT, ZERO, MoneyLike, to_decimal, to_money


def equal_split(amount: MoneyLike, member_ids: list[str]) -> list[ExpenseSplit]:
    """
    Split evenly; the last member absorbs the rounding remainder.

    100 over three members gives 33.33, 33.33, 33.34.
    """
    if not member_ids:
        return []

    total = to_money(amount)
    count = len(member_ids)
    base = to_money(total / count)
    last = to_money(total - base * (count - 1))

    return [
        ExpenseSplit(user_id=user_id, owed_amount=last if i == count - 1 else base)
        for i, user_id in enumerate(member_ids)
    ]


def unequal_split(
    amount: MoneyLike,
    amounts: Mapping[str, MoneyLike],
) -> list[ExpenseSplit]:
    """Fixed per-member amounts, rounded to the cent. No normalization."""
    return [
        ExpenseSplit(user_id=user_id, owed_amount=to_money(owed))
        for user_id, owed in amounts.items()
    ]


def percentage_split(
    amount: MoneyLike,
    percentages: Mapping[str, MoneyLike],
) -> list[ExpenseSplit]:
    """owed = amount * pct / 100 per member, each rounded independently."""
    total = to_money(amount)
    return [
        ExpenseSplit(
            user_id=user_id,
            owed_amount=to_money(total * to_decimal(pct) / 100),
        )
        for user_id, pct in percentages.items()
    ]


def share_split(
    amount: MoneyLike,
    shares: Mapping[str, MoneyLike],
) -> list[ExpenseSplit]:
    """owed = amount * share / total_shares. Zero total shares gives no splits."""
    total_shares = sum((to_decimal(s) for s in shares.values()), Decimal(0))
    if total_shares == 0:
        return []

    total = to_money(amount)
    return [
        ExpenseSplit(
            user_id=user_id,
            owed_amount=to_money(total * to_decimal(share) / total_shares),
        )
        for user_id, share in shares.items()
    ]


def apply_remainder_fix(
    amount: MoneyLike,
    splits: list[ExpenseSplit],
    member_id: Optional[str] = None,
) -> list[ExpenseSplit]:
    """
    Assign the rounding residual to one member so the splits sum exactly.

    The residual goes to `member_id`, or to the last split when not given.
    Returns new split objects; the input list is left untouched.
    """
    if not splits:
        return []

    residual = to_money(amount) - sum((s.owed_amount for s in splits), ZERO)
    if residual == 0:
        return [s.model_copy() for s in splits]

    target = len(splits) - 1
    if member_id is not None:
        for i, split in enumerate(splits):
            if split.user_id == member_id:
                target = i
                break
        else:
            raise ValueError(f"Member {member_id} is not part of the split")

    fixed = []
    for i, split in enumerate(splits):
        if i == target:
            fixed.append(split.model_copy(
                update={"owed_amount": to_money(split.owed_amount + residual)}
            ))
        else:
            fixed.append(split.model_copy())
    return fixed


def _fix_rounding_drift(
    amount: MoneyLike,
    splits: list[ExpenseSplit],
) -> list[ExpenseSplit]:
    # Only per-member rounding drift is corrected; a percentage set that
    # doesn't add up to 100 is left for the validator to reject.
    drift = to_money(amount) - sum((s.owed_amount for s in splits), ZERO)
    if abs(drift) <= CENT * len(splits):
        return apply_remainder_fix(amount, splits)
    return splits


def exclude_members(
    splits: list[ExpenseSplit],
    excluded_ids: list[str],
) -> list[ExpenseSplit]:
    excluded = set(excluded_ids)
    return [s for s in splits if s.user_id not in excluded]


def _without(values: Optional[Mapping[str, MoneyLike]], excluded: set[str]):
    if values is None:
        return None
    return {k: v for k, v in values.items() if k not in excluded}


def normalize_splits(
    split_type: SplitType,
    amount: MoneyLike,
    member_ids: Optional[list[str]] = None,
    amounts: Optional[Mapping[str, MoneyLike]] = None,
    percentages: Optional[Mapping[str, MoneyLike]] = None,
    shares: Optional[Mapping[str, MoneyLike]] = None,
    excluded_ids: Optional[list[str]] = None,
    fix_remainder: bool = True,
) -> list[ExpenseSplit]:
    """
    Build splits for any split type.

    Excluded members are dropped from the inputs first, so the remaining
    members share the whole amount. Percentage and share results get the
    remainder fix unless `fix_remainder` is False. Missing configuration
    for the requested type is a programming error and raises ValueError.
    """
    split_type = SplitType(split_type)
    excluded = set(excluded_ids or [])

    if split_type == SplitType.EQUAL:
        if member_ids is None:
            raise ValueError("Member IDs required for equal split")
        splits = equal_split(amount, [m for m in member_ids if m not in excluded])
    elif split_type == SplitType.UNEQUAL:
        if amounts is None:
            raise ValueError("Amounts required for unequal split")
        splits = unequal_split(amount, _without(amounts, excluded))
    elif split_type == SplitType.PERCENTAGE:
        if percentages is None:
            raise ValueError("Percentages required for percentage split")
        splits = percentage_split(amount, _without(percentages, excluded))
        if fix_remainder:
            splits = _fix_rounding_drift(amount, splits)
    else:
        if shares is None:
            raise ValueError("Shares required for share-based split")
        splits = share_split(amount, _without(shares, excluded))
        if fix_remainder:
            splits = _fix_rounding_drift(amount, splits)

    return splits
