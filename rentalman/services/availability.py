"""
Availability service -- how many units of an item are free in a range.

    available = max(total_stock - occupied, 0)

Tracking mode is resolved once, in resource_for(), into a
QuantifiableResource. Callers never branch on serialized vs lot.

Occupancy counts commitments of active work orders (not completado or
cancelado) whose interval overlaps the range, inclusive on both ends.
Equipment held by a rental counts once, however many of its orders
(montaje, desmontaje) list it.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from contextlib import contextmanager
from datetime import date

from rentalman.conf import get_repository_backend, get_setting
from rentalman.exceptions import AvailabilityCheckFailed, InvalidValue, NotFound, RentalError
from rentalman.protocols.ledger import ItemRecord, Repository, SerialRecord
from rentalman.results import Availability, StockSource

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════
# RESOURCES
# ══════════════════════════════════════════════════════════════


class QuantifiableResource:
    """An item seen as a countable pool of units."""

    source = StockSource.SERIES

    def __init__(self, item: ItemRecord, repository: Repository):
        self.item = item
        self.repository = repository

    def total_stock(self) -> int:
        raise NotImplementedError

    def occupied(self, date_from: date, date_to: date, exclude_rental_id: int | None = None) -> int:
        raise NotImplementedError

    def _commitments(self, date_from, date_to, exclude_rental_id):
        return self.repository.list_active_commitments(
            date_from,
            date_to,
            item_id=self.item.id,
            exclude_rental_id=exclude_rental_id,
        )


class SerializedResource(QuantifiableResource):
    """One row per physical unit; stock = units in a stock state."""

    source = StockSource.SERIES

    def total_stock(self) -> int:
        states = get_setting("SERIAL_STOCK_STATES")
        return len(self.repository.list_serial_units(self.item.id, states=states))

    def occupied(self, date_from, date_to, exclude_rental_id=None) -> int:
        commitments = self._commitments(date_from, date_to, exclude_rental_id)
        units = {c.serial_id for c in commitments if c.serial_id is not None}
        unbound = once_per_rental(c for c in commitments if c.serial_id is None)
        return len(units) + unbound


class LotResource(QuantifiableResource):
    """Interchangeable units grouped in lots; stock = Σ lot quantity."""

    source = StockSource.LOTS

    def total_stock(self) -> int:
        states = get_setting("LOT_STOCK_STATES")
        return sum(lot.quantity for lot in self.repository.list_lots(self.item.id, states=states))

    def occupied(self, date_from, date_to, exclude_rental_id=None) -> int:
        return once_per_rental(self._commitments(date_from, date_to, exclude_rental_id))


class RawQuantityResource(LotResource):
    """
    Legacy path: item has neither serial units nor lots.

    Stock is the item's raw quantity field, which is not kept in sync with
    real inventory. Results built from it carry source="raw_quantity".
    """

    source = StockSource.RAW_QUANTITY

    def total_stock(self) -> int:
        if not get_setting("ALLOW_RAW_QUANTITY_FALLBACK"):
            return 0
        logger.warning(
            f"Item {self.item.code} has no serial units or lots, using raw quantity",
            extra={"item": self.item.id, "quantity": self.item.quantity},
        )
        return max(self.item.quantity, 0)


def once_per_rental(commitments) -> int:
    """
    Quantity held by a set of commitments, each rental counted once.

    Per (rental, lot) the largest single order wins: a montaje and the
    desmontaje of the same rental listing 60 chairs hold 60, not 120.
    Orders without a rental stand on their own.
    """
    per_order = defaultdict(int)
    for c in commitments:
        holder = ("rental", c.rental_id) if c.rental_id is not None else ("order", c.work_order_id)
        per_order[(holder, c.lot_id, c.work_order_id)] += c.quantity

    held = defaultdict(int)
    for (holder, lot_id, _), quantity in per_order.items():
        held[(holder, lot_id)] = max(held[(holder, lot_id)], quantity)
    return sum(held.values())


def resource_for(item: ItemRecord, repository: Repository) -> QuantifiableResource:
    """Pick the resource strategy for an item's tracking mode."""
    if item.tracking == "serialized":
        if repository.list_serial_units(item.id):
            return SerializedResource(item, repository)
    elif repository.list_lots(item.id):
        return LotResource(item, repository)
    return RawQuantityResource(item, repository)


# ══════════════════════════════════════════════════════════════
# CALCULATOR
# ══════════════════════════════════════════════════════════════


class AvailabilityCalculator:
    """
    Answers "how many of item X are free in [from, to]".

    Usage:
        calc = AvailabilityCalculator()
        calc.check(item_id, date(2025, 2, 10), date(2025, 2, 12)).available
    """

    def __init__(self, repository: Repository | None = None):
        self._repository = repository

    @property
    def repository(self) -> Repository:
        return self._repository or get_repository_backend()

    def check(
        self,
        item_id: int,
        date_from: date,
        date_to: date | None = None,
        exclude_rental_id: int | None = None,
    ) -> Availability:
        """
        Availability of an item over a range (single day when date_to is None).

        Raises:
            InvalidValue: date_from after date_to
            NotFound: unknown item
            AvailabilityCheckFailed: the repository failed
        """
        date_to = date_to or date_from
        _check_range(date_from, date_to)

        try:
            item = self.repository.get_equipment_item(item_id)
            if item is None:
                raise NotFound("ITEM_NOT_FOUND", item_id=item_id)

            resource = resource_for(item, self.repository)
            total = resource.total_stock()
            occupied = resource.occupied(date_from, date_to, exclude_rental_id)
        except RentalError:
            raise
        except Exception as e:
            logger.error(
                f"Availability lookup failed for item {item_id}: {e}",
                extra={"item": item_id, "date_from": str(date_from), "date_to": str(date_to)},
            )
            raise AvailabilityCheckFailed(item_id=item_id, error=str(e)) from e

        return Availability(
            item_id=item_id,
            total_stock=total,
            occupied=occupied,
            date_from=date_from,
            date_to=date_to,
            source=resource.source,
        )

    def is_serial_available(
        self,
        serial_id: int,
        date_from: date,
        date_to: date | None = None,
        exclude_rental_id: int | None = None,
    ) -> bool:
        """
        Is this physical unit free in the range?

        The unit must be in a stock state and have no overlapping
        commitment of an active order. Aggregate counts are not consulted.
        """
        date_to = date_to or date_from
        _check_range(date_from, date_to)

        try:
            unit = self.repository.get_serial_unit(serial_id)
            if unit is None:
                raise NotFound("SERIAL_NOT_FOUND", serial_id=serial_id)
            if unit.status not in get_setting("SERIAL_STOCK_STATES"):
                return False
            commitments = self.repository.list_active_commitments(
                date_from,
                date_to,
                serial_id=serial_id,
                exclude_rental_id=exclude_rental_id,
            )
        except RentalError:
            raise
        except Exception as e:
            logger.error(
                f"Serial lookup failed for unit {serial_id}: {e}",
                extra={"serial": serial_id},
            )
            raise AvailabilityCheckFailed(serial_id=serial_id, error=str(e)) from e

        return not commitments

    def check_many(
        self,
        requirements: dict[int, int],
        date_from: date,
        date_to: date | None = None,
        exclude_rental_id: int | None = None,
    ) -> dict:
        """
        Check a set of {item_id: required} at once (quotation approval).

        A failure on one item is reported on that row and marks the whole
        set as not available; other rows are still computed.
        """
        rows = []
        for item_id, required in requirements.items():
            row = {"item_id": item_id, "required": required}
            try:
                availability = self.check(item_id, date_from, date_to, exclude_rental_id)
            except RentalError as e:
                row.update(available=0, shortfall=required, ok=False, error=e.as_dict())
            else:
                shortfall = max(required - availability.available, 0)
                row.update(
                    available=availability.available,
                    total_stock=availability.total_stock,
                    occupied=availability.occupied,
                    shortfall=shortfall,
                    ok=shortfall == 0,
                )
            rows.append(row)

        return {
            "all_available": all(r["ok"] for r in rows),
            "items": rows,
        }

    # ── Listings and assignment ──

    def free_serials(
        self,
        item_id: int,
        date_from: date,
        date_to: date | None = None,
        limit: int | None = None,
        exclude_rental_id: int | None = None,
    ) -> list[SerialRecord]:
        """
        Units of an item in a stock state and not committed in the range,
        ordered by serial number.
        """
        date_to = date_to or date_from
        _check_range(date_from, date_to)

        with _lookup(item_id=item_id):
            self._get_item(item_id)
            units = self.repository.list_serial_units(item_id, states=get_setting("SERIAL_STOCK_STATES"))
            held = {
                c.serial_id
                for c in self.repository.list_active_commitments(
                    date_from, date_to, item_id=item_id, exclude_rental_id=exclude_rental_id
                )
                if c.serial_id is not None
            }

        free = sorted((u for u in units if u.id not in held), key=lambda u: u.serial_number)
        return free[:limit] if limit is not None else free

    def free_lots(
        self,
        item_id: int,
        date_from: date,
        date_to: date | None = None,
        exclude_rental_id: int | None = None,
    ) -> list[dict]:
        """
        Lots of an item with free quantity in the range, most free first.

        Only commitments drawn from a lot count against it; quantity
        committed without a lot is not attributed to any.
        """
        date_to = date_to or date_from
        _check_range(date_from, date_to)

        with _lookup(item_id=item_id):
            self._get_item(item_id)
            lots = self.repository.list_lots(item_id, states=get_setting("LOT_STOCK_STATES"))
            commitments = self.repository.list_active_commitments(
                date_from, date_to, item_id=item_id, exclude_rental_id=exclude_rental_id
            )

        rows = []
        for lot in lots:
            occupied = once_per_rental(c for c in commitments if c.lot_id == lot.id)
            available = lot.quantity - occupied
            if available <= 0:
                continue
            rows.append(
                {
                    "lot_id": lot.id,
                    "lot_number": lot.lot_number,
                    "total": lot.quantity,
                    "occupied": occupied,
                    "available": available,
                }
            )
        rows.sort(key=lambda r: (-r["available"], r["lot_number"]))
        return rows

    def auto_assign(
        self,
        requirements: dict[int, int],
        date_from: date,
        date_to: date | None = None,
        exclude_rental_id: int | None = None,
    ) -> dict:
        """
        Propose concrete units for {item_id: required}.

        Serialized items get free units by serial number; lot items are
        filled from the lots with the most free quantity first. Whatever
        cannot be covered is reported as a warning, never raised.
        Nothing is written.
        """
        assignments = []
        warnings = []

        for item_id, required in requirements.items():
            if required <= 0:
                raise InvalidValue("INVALID_QUANTITY", item_id=item_id, quantity=required)

            with _lookup(item_id=item_id):
                item = self._get_item(item_id)

            if item.tracking == "serialized":
                units = self.free_serials(
                    item_id, date_from, date_to, limit=required, exclude_rental_id=exclude_rental_id
                )
                for unit in units:
                    assignments.append(
                        {
                            "item_id": item_id,
                            "serial_id": unit.id,
                            "serial_number": unit.serial_number,
                            "quantity": 1,
                        }
                    )
                assigned = len(units)
            else:
                assigned = 0
                for lot in self.free_lots(item_id, date_from, date_to, exclude_rental_id=exclude_rental_id):
                    if assigned == required:
                        break
                    take = min(required - assigned, lot["available"])
                    assignments.append(
                        {
                            "item_id": item_id,
                            "lot_id": lot["lot_id"],
                            "lot_number": lot["lot_number"],
                            "quantity": take,
                        }
                    )
                    assigned += take

            if assigned < required:
                warnings.append(
                    {
                        "item_id": item_id,
                        "item_name": item.name,
                        "required": required,
                        "assigned": assigned,
                        "shortfall": required - assigned,
                    }
                )

        if warnings:
            logger.warning(
                f"Auto-assignment short for {len(warnings)} item(s)",
                extra={"items": [w["item_id"] for w in warnings], "date_from": str(date_from)},
            )

        return {
            "assignments": assignments,
            "warnings": warnings,
            "has_warnings": bool(warnings),
        }

    def occupancy_calendar(
        self,
        date_from: date,
        date_to: date,
        item_ids: list[int] | None = None,
    ) -> list[dict]:
        """
        Who holds what in [from, to], grouped by item.

        One occupation per rental and unit (or lot): the montaje and
        desmontaje of a rental appear once, with both order ids and the
        widest interval. Orders without a rental are listed on their own.
        """
        _check_range(date_from, date_to)

        with _lookup(date_from=str(date_from), date_to=str(date_to)):
            if item_ids is None:
                commitments = self.repository.list_active_commitments(date_from, date_to)
            else:
                commitments = []
                for item_id in dict.fromkeys(item_ids):
                    commitments.extend(
                        self.repository.list_active_commitments(date_from, date_to, item_id=item_id)
                    )

            groups = {}
            for c in sorted(commitments, key=lambda c: (c.item_id, c.start_date, c.id)):
                if c.item_id not in groups:
                    item = self.repository.get_equipment_item(c.item_id)
                    groups[c.item_id] = {
                        "item_id": c.item_id,
                        "item_name": item.name if item else "",
                        "tracking": item.tracking if item else "",
                        "occupations": {},
                    }
                occupations = groups[c.item_id]["occupations"]

                holder = ("rental", c.rental_id) if c.rental_id is not None else ("order", c.work_order_id)
                key = (holder, c.serial_id, c.lot_id)
                row = occupations.get(key)
                if row is None:
                    unit = self.repository.get_serial_unit(c.serial_id) if c.serial_id else None
                    row = occupations[key] = {
                        "rental_id": c.rental_id,
                        "work_order_ids": [],
                        "start_date": c.start_date,
                        "end_date": c.end_date,
                        "quantity": 0,
                        "serial_id": c.serial_id,
                        "serial_number": unit.serial_number if unit else None,
                        "lot_id": c.lot_id,
                        "_per_order": defaultdict(int),
                    }
                if c.work_order_id not in row["work_order_ids"]:
                    row["work_order_ids"].append(c.work_order_id)
                row["start_date"] = min(row["start_date"], c.start_date)
                row["end_date"] = max(row["end_date"], c.end_date)
                row["_per_order"][c.work_order_id] += c.quantity

        calendar = []
        for group in groups.values():
            rows = []
            for row in group["occupations"].values():
                row["quantity"] = max(row.pop("_per_order").values())
                rows.append(row)
            group["occupations"] = rows
            calendar.append(group)
        return calendar

    def _get_item(self, item_id: int) -> ItemRecord:
        item = self.repository.get_equipment_item(item_id)
        if item is None:
            raise NotFound("ITEM_NOT_FOUND", item_id=item_id)
        return item


@contextmanager
def _lookup(**context):
    """Turn repository failures into AvailabilityCheckFailed."""
    try:
        yield
    except RentalError:
        raise
    except Exception as e:
        logger.error(f"Availability lookup failed: {e}", extra=context)
        raise AvailabilityCheckFailed(error=str(e), **context) from e


def _check_range(date_from: date, date_to: date) -> None:
    if date_from > date_to:
        raise InvalidValue("INVALID_RANGE", date_from=str(date_from), date_to=str(date_to))
