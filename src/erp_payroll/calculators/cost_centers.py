"""Cost-center distribution rules."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import ROUND_DOWN, Decimal
from typing import Any

from erp_payroll.exceptions import ValidationError

HUNDRED = Decimal("100")
TOLERANCE = Decimal("0.01")


def _as_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def is_valid_distribution(percentages: Iterable[Any]) -> bool:
    """True when the percentages sum to 100 within 0.01."""
    total = sum((_as_decimal(p) for p in percentages), Decimal("0"))
    return abs(total - HUNDRED) <= TOLERANCE


def validate_cost_center_distribution(
    percentages: Iterable[Any],
    field: str = "cost_centers",
) -> None:
    """Raise ValidationError unless the percentages sum to 100 (±0.01).

    An empty distribution is accepted: the amount is simply not split.
    """
    values = [_as_decimal(p) for p in percentages]
    if not values:
        return
    if any(v < 0 for v in values):
        raise ValidationError("Cost center percentages cannot be negative", field=field)
    if not is_valid_distribution(values):
        total = sum(values, Decimal("0"))
        raise ValidationError(
            f"Cost center percentages must sum to 100% (got {total}%)",
            field=field,
        )


def split_amount(amount: int, shares: Sequence[tuple[int, Any]]) -> list[tuple[int, Decimal, int]]:
    """Split an integer amount across (cost_center_id, percentage) shares.

    Every share but the last is truncated to whole minor units. When the
    shares form a full distribution the last one takes the remainder, so
    the parts add up to ``amount``.
    """
    if not shares:
        return []

    complete = is_valid_distribution(p for _, p in shares)
    parts: list[tuple[int, Decimal, int]] = []
    allocated = 0
    for index, (cost_center_id, percentage) in enumerate(shares):
        pct = _as_decimal(percentage)
        if complete and index == len(shares) - 1:
            part = amount - allocated
        else:
            part = int((Decimal(amount) * pct / HUNDRED).to_integral_value(rounding=ROUND_DOWN))
            allocated += part
        parts.append((cost_center_id, pct, part))
    return parts


def weighted_distribution(
    rows: Iterable[tuple[int, Sequence[tuple[int, Any]]]],
) -> list[tuple[int, Decimal]]:
    """Average cost-center percentages weighted by each row's amount.

    ``rows`` holds (gross_pay, [(cost_center_id, percentage), ...]) pairs.
    Amounts without a distribution dilute the weights, matching how an
    unallocated share of the payroll stays unallocated.
    """
    weights: dict[int, Decimal] = {}
    total = Decimal("0")
    for gross, shares in rows:
        if not shares:
            total += Decimal(gross)
            continue
        for cost_center_id, percentage in shares:
            weighted = Decimal(gross) * _as_decimal(percentage) / HUNDRED
            weights[cost_center_id] = weights.get(cost_center_id, Decimal("0")) + weighted
            total += weighted

    if total <= 0:
        return []
    return [
        (cost_center_id, (weight / total * HUNDRED).quantize(Decimal("0.0001")))
        for cost_center_id, weight in sorted(weights.items())
    ]
