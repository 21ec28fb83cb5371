"""
Stop Sequence Manager.

An ordered list of stops belonging to one calculation session.  The last
element is always the final destination; there is no stored flag, so
reordering moves the destination role with it.

The multi-stop limit is enforced here, on the write path, rather than by
whatever UI happens to hide the "add stop" control.
"""

from __future__ import annotations

from typing import Iterable, Optional

from .entities import GeoPoint, Stop, StopNotFound, UpgradeRequired
from .enums import Feature


class StopSequence:
    def __init__(self, stops: Optional[Iterable[Stop]] = None):
        self._stops: list[Stop] = list(stops) if stops is not None else [Stop()]
        if not self._stops:
            raise ValueError("A stop sequence needs at least one stop")

    def __len__(self) -> int:
        return len(self._stops)

    def __iter__(self):
        return iter(self._stops)

    def __getitem__(self, index: int) -> Stop:
        return self._stops[index]

    @property
    def destination(self) -> Stop:
        return self._stops[-1]

    def snapshot(self) -> tuple[Stop, ...]:
        """Immutable copy; later edits do not affect it."""
        return tuple(self._stops)

    def _index_of(self, stop_id: str) -> int:
        for i, stop in enumerate(self._stops):
            if stop.id == stop_id:
                return i
        raise StopNotFound(stop_id)

    # ── Mutations ─────────────────────────────────────────────────

    def add_stop(self, entitled: bool) -> Stop:
        """Append a blank stop.  Without entitlement only one stop is allowed."""
        if not entitled and len(self._stops) >= 1:
            raise UpgradeRequired(Feature.MULTI_STOP)
        stop = Stop()
        self._stops.append(stop)
        return stop

    def remove_stop(self, stop_id: str) -> None:
        index = self._index_of(stop_id)
        if len(self._stops) == 1:
            return
        del self._stops[index]

    def update_address(self, stop_id: str, address: str) -> Stop:
        index = self._index_of(stop_id)
        self._stops[index] = self._stops[index].with_address(address)
        return self._stops[index]

    def update_location(self, stop_id: str, location: GeoPoint) -> Stop:
        index = self._index_of(stop_id)
        self._stops[index] = self._stops[index].with_location(location)
        return self._stops[index]

    def reorder(self, from_index: int, to_index: int) -> None:
        size = len(self._stops)
        if not (0 <= from_index < size and 0 <= to_index < size):
            raise IndexError(
                f"Cannot move stop {from_index} to {to_index} in a list of {size}"
            )
        stop = self._stops.pop(from_index)
        self._stops.insert(to_index, stop)

    def replace(self, stops: Iterable[Stop]) -> None:
        """Swap in a whole new sequence (restore, import, recent search)."""
        new_stops = list(stops)
        if not new_stops:
            raise ValueError("A stop sequence needs at least one stop")
        self._stops = new_stops

    def reset(self) -> None:
        self._stops = [Stop()]
