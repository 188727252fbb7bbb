"""Field groups and rollback snapshots.

A :class:`FieldGroup` is the ordered set of fields that are advanced and
rolled back together (for the Weibel deck: ``distfElc``, ``distfIon``,
``em``). A :class:`Snapshot` is a read-only copy of a whole group taken
before a step attempt.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping

from vmsim.core.field import Field
from vmsim.errors import FieldContractError

logger = logging.getLogger(__name__)


class FieldGroup(Mapping[str, Field]):
    """Ordered, fixed-size mapping of name to :class:`Field`.

    Membership is frozen at construction; only field contents change.
    """

    def __init__(self, fields: Mapping[str, Field] | list[Field]) -> None:
        if isinstance(fields, Mapping):
            items = list(fields.items())
        else:
            items = [(f.name, f) for f in fields]
        if not items:
            raise ValueError("a field group needs at least one field")
        names = [name for name, _ in items]
        if len(set(names)) != len(names):
            raise ValueError(f"duplicate field names in group: {names}")
        self._fields: dict[str, Field] = dict(items)

    def __getitem__(self, name: str) -> Field:
        return self._fields[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self._fields)

    def check_compatible(self, other: FieldGroup, operation: str) -> None:
        """Raise :class:`FieldContractError` unless ``other`` has the same members and layouts."""
        if self.names != other.names:
            raise FieldContractError(
                f"{operation}: group members {other.names} do not match {self.names}"
            )
        for name, fld in self._fields.items():
            fld.check_layout(other[name], operation)

    def duplicate(self, suffix: str = "") -> FieldGroup:
        """Return a new group with fresh buffers holding a copy of the contents."""
        return FieldGroup({name: fld.duplicate(name + suffix) for name, fld in self._fields.items()})

    def copy(self, other: FieldGroup) -> FieldGroup:
        self.check_compatible(other, "copy")
        for name, fld in self._fields.items():
            fld.copy(other[name])
        return self

    def combine(self, w1: float, g1: FieldGroup, w2: float, g2: FieldGroup) -> FieldGroup:
        """Set every member to ``w1*g1 + w2*g2``."""
        self.check_compatible(g1, "combine")
        self.check_compatible(g2, "combine")
        for name, fld in self._fields.items():
            fld.combine(w1, g1[name], w2, g2[name])
        return self

    def __repr__(self) -> str:
        return f"FieldGroup({list(self._fields)})"


class Snapshot:
    """Read-only copy of a :class:`FieldGroup` used for rollback.

    The buffers are allocated once and reused across attempts. After
    :meth:`capture` they are flagged non-writeable until the next capture,
    so nothing can modify a snapshot that is still live.
    """

    def __init__(self, group: FieldGroup) -> None:
        self._fields = group.duplicate(suffix="Dup")
        self._time: float | None = None
        self._set_writeable(False)

    def _set_writeable(self, flag: bool) -> None:
        for fld in self._fields.values():
            fld.data.flags.writeable = flag

    @property
    def is_valid(self) -> bool:
        return self._time is not None

    @property
    def time(self) -> float | None:
        """Simulation time at capture, or None if discarded."""
        return self._time

    @property
    def fields(self) -> FieldGroup:
        return self._fields

    def capture(self, group: FieldGroup, time: float) -> None:
        """Copy the full contents of ``group`` into the snapshot."""
        self._set_writeable(True)
        try:
            self._fields.copy(group)
        finally:
            self._set_writeable(False)
        self._time = float(time)
        logger.debug("Snapshot captured at t=%g", time)

    def restore(self, group: FieldGroup) -> None:
        """Overwrite ``group`` with the captured contents.

        Raises:
            RuntimeError: If no snapshot is currently held.
        """
        if self._time is None:
            raise RuntimeError("no snapshot to restore")
        group.copy(self._fields)
        logger.debug("Snapshot restored to t=%g", self._time)

    def discard(self) -> None:
        self._time = None
