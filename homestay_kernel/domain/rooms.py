"""
Room capacity value objects and bounds checks.

Responsibility
--------------
``RoomBreakdown`` is the only way room counts enter the kernel: it checks
that the categories add up to the total and that the total stays inside
``[1, max_rooms]``.  ``validate_room_delta`` computes the target breakdown
for an add/delete service request and rejects deltas that would leave the
property outside its bounds.

Architecture position
---------------------
**Kernel domain layer** -- pure.  Policy limits are passed in as integers.
"""

from __future__ import annotations

from dataclasses import dataclass

from homestay_kernel.domain.statuses import ApplicationKind
from homestay_kernel.exceptions import (
    InvalidRoomBreakdownError,
    RoomDeltaError,
    RoomLimitExceededError,
)

ROOM_FIELDS = ("single", "double", "family")


@dataclass(frozen=True)
class RoomBreakdown:
    """Rooms per category.  ``total`` is always the sum of the three."""

    single: int = 0
    double: int = 0
    family: int = 0

    @property
    def total(self) -> int:
        return self.single + self.double + self.family

    def as_dict(self) -> dict[str, int]:
        return {"single": self.single, "double": self.double, "family": self.family}

    @classmethod
    def from_dict(cls, data: dict | None) -> RoomBreakdown:
        data = data or {}
        return cls(
            single=int(data.get("single", 0) or 0),
            double=int(data.get("double", 0) or 0),
            family=int(data.get("family", 0) or 0),
        )

    @classmethod
    def validated(
        cls,
        total_rooms: int,
        single: int,
        double: int,
        family: int,
        max_rooms: int,
    ) -> RoomBreakdown:
        """Build a breakdown from declared values, enforcing the capacity rules.

        Raises:
            InvalidRoomBreakdownError: negative counts, sum != total, total < 1.
            RoomLimitExceededError: total > max_rooms.
        """
        if min(single, double, family) < 0 or single + double + family != total_rooms:
            raise InvalidRoomBreakdownError(total_rooms, single, double, family)
        if total_rooms < 1:
            raise InvalidRoomBreakdownError(total_rooms, single, double, family)
        if total_rooms > max_rooms:
            raise RoomLimitExceededError(total_rooms, max_rooms)
        return cls(single=single, double=double, family=family)


def validate_room_delta(
    kind: ApplicationKind | str,
    current: RoomBreakdown,
    delta: RoomBreakdown,
    max_rooms: int,
    min_rooms_after_delete: int,
) -> RoomBreakdown:
    """Return the target breakdown for an add/delete request.

    Preconditions: ``current`` is the parent's approved breakdown.
    Postconditions: returned breakdown satisfies
        ``min_rooms_after_delete <= total <= max_rooms`` (delete) or
        ``total <= max_rooms`` (add).

    Raises:
        RoomDeltaError: negative or all-zero delta, deleting more rooms than
            a category holds, or dropping below the minimum.
        RoomLimitExceededError: add would exceed ``max_rooms``.
    """
    kind = ApplicationKind(kind)
    for name in ROOM_FIELDS:
        if getattr(delta, name) < 0:
            raise RoomDeltaError(
                "Room counts in a request must be zero or positive",
                field=name,
                current=getattr(current, name),
                attempted=getattr(delta, name),
            )
    if delta.total == 0:
        raise RoomDeltaError(
            "Specify at least one room to change",
            field="total_rooms",
            current=current.total,
            attempted=0,
        )

    if kind == ApplicationKind.ADD_ROOMS:
        target = RoomBreakdown(
            single=current.single + delta.single,
            double=current.double + delta.double,
            family=current.family + delta.family,
        )
        if target.total > max_rooms:
            raise RoomLimitExceededError(target.total, max_rooms, current.total)
        return target

    if kind == ApplicationKind.DELETE_ROOMS:
        for name in ROOM_FIELDS:
            if getattr(delta, name) > getattr(current, name):
                raise RoomDeltaError(
                    "Cannot delete more rooms than currently exist in that category",
                    field=name,
                    current=getattr(current, name),
                    attempted=getattr(delta, name),
                )
        target = RoomBreakdown(
            single=current.single - delta.single,
            double=current.double - delta.double,
            family=current.family - delta.family,
        )
        if target.total < min_rooms_after_delete:
            raise RoomDeltaError(
                f"At least {min_rooms_after_delete} room must remain after deletion",
                field="total_rooms",
                current=current.total,
                attempted=target.total,
            )
        return target

    raise RoomDeltaError(
        f"{kind.value} requests do not change room counts",
        field="application_kind",
        attempted=kind.value,
    )
