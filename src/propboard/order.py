"""Gap-based fractional ordering for lists and cards.

Positions are floats. Inserting between two siblings takes the midpoint, so
no sibling is ever rewritten on a normal insert. Repeated midpoints between
the same neighbours eventually run out of float precision; callers check
``precision_exhausted`` first and renumber the container when it fires.
"""

import math
from typing import Iterable, Sequence

from propboard.constants import ORDER_GAP

# Neighbours closer than this many ULPs of their magnitude are treated as
# exhausted. Leaves headroom for a few more midpoints after detection.
PRECISION_ULPS = 64

# Head inserts halve the first order; below this they stop being useful.
MIN_HEAD_ORDER = 1e-6


def compute_insertion_order(
    prev_order: float | None,
    next_order: float | None,
    gap: float = ORDER_GAP,
) -> float:
    """Return an order that sorts between prev_order and next_order.

    - empty container: ``gap``
    - head: half of next (or next - gap when next is not positive)
    - tail: prev + gap
    - middle: the midpoint
    """
    if prev_order is None and next_order is None:
        return gap
    if prev_order is None:
        if next_order <= 0:
            return next_order - gap
        return next_order / 2
    if next_order is None:
        return prev_order + gap
    return (prev_order + next_order) / 2


def precision_exhausted(prev_order: float | None, next_order: float | None) -> bool:
    """True when an insert between these neighbours can no longer be trusted."""
    if prev_order is None and next_order is None:
        return False
    if prev_order is None:
        return 0 < next_order < MIN_HEAD_ORDER
    if next_order is None:
        return not math.isfinite(prev_order + ORDER_GAP)
    if next_order <= prev_order:
        return True
    scale = max(abs(prev_order), abs(next_order), MIN_HEAD_ORDER)
    return (next_order - prev_order) <= PRECISION_ULPS * math.ulp(scale)


def has_collisions(orders: Iterable[float]) -> bool:
    """True if any two siblings share an order."""
    seen: set[float] = set()
    for order in orders:
        if order in seen:
            return True
        seen.add(order)
    return False


def renumber(ids: Sequence[str], gap: float = ORDER_GAP) -> dict[str, float]:
    """Assign evenly spaced orders to ids in their given sequence.

    Starts at ``gap`` rather than zero so a later head insert (half of the
    first order) still sorts strictly first.
    """
    return {item_id: gap * (i + 1) for i, item_id in enumerate(ids)}


def neighbours(orders: Sequence[float], index: int) -> tuple[float | None, float | None]:
    """Return the orders either side of an insertion index."""
    prev_order = orders[index - 1] if index > 0 else None
    next_order = orders[index] if index < len(orders) else None
    return prev_order, next_order


def sort_key(item_id: str, data: dict) -> tuple[float, str]:
    """Sort key for a sibling document: order, then id as a stable tie-break."""
    order = data.get("order")
    if not isinstance(order, (int, float)) or isinstance(order, bool):
        order = math.inf
    return float(order), item_id


def plan_insert(
    sibling_ids: Sequence[str],
    sibling_orders: Sequence[float],
    index: int,
    item_id: str,
    gap: float = ORDER_GAP,
) -> dict[str, float]:
    """Work out the order writes needed to insert item_id at index.

    ``sibling_ids`` and ``sibling_orders`` describe the container without the
    item, sorted. Normally returns a single entry for the item. When the
    container has colliding orders or the neighbours are exhausted it returns
    a full renumber of the container with the item in place.
    """
    index = max(0, min(index, len(sibling_ids)))
    prev_order, next_order = neighbours(sibling_orders, index)
    if has_collisions(sibling_orders) or precision_exhausted(prev_order, next_order):
        ids = list(sibling_ids)
        ids.insert(index, item_id)
        return renumber(ids, gap)
    return {item_id: compute_insertion_order(prev_order, next_order, gap)}
