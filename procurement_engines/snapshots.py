"""
Latest-snapshot selection for stated inventory.

Every engine that reads inventory takes the latest ``InventorySnapshot``
per (FPO, product): the greatest ``as_of``, with undated snapshots older
than any dated one. Two snapshots tied for latest are ambiguous and raise
AmbiguousSnapshotError; picking one silently would make the result depend
on input order.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date

from procurement_kernel.domain.records import InventorySnapshot
from procurement_kernel.exceptions import AmbiguousSnapshotError
from procurement_kernel.logging_config import get_logger

logger = get_logger("engines.snapshots")

SnapshotKey = tuple[str, str]


def _order(snapshot: InventorySnapshot) -> tuple[int, date]:
    if snapshot.as_of is None:
        return (0, date.min)
    return (1, snapshot.as_of)


def latest_snapshots(
    snapshots: Iterable[InventorySnapshot],
) -> dict[SnapshotKey, InventorySnapshot]:
    """
    Map ``(fpo_id, product_id)`` to the latest snapshot for that pair.

    Raises:
        AmbiguousSnapshotError: two snapshots share the latest ``as_of``
            (including two undated snapshots with no dated one).
    """
    latest: dict[SnapshotKey, InventorySnapshot] = {}
    tied: set[SnapshotKey] = set()
    for snapshot in snapshots:
        key = (snapshot.fpo_id, snapshot.product_id)
        current = latest.get(key)
        if current is None or _order(snapshot) > _order(current):
            latest[key] = snapshot
            tied.discard(key)
        elif _order(snapshot) == _order(current):
            tied.add(key)

    if tied:
        key = min(tied)
        as_of = latest[key].as_of
        logger.warning("ambiguous_inventory_snapshot", extra={
            "fpo_id": key[0],
            "product_id": key[1],
            "as_of": as_of,
        })
        raise AmbiguousSnapshotError(key[0], key[1], as_of)
    return latest
