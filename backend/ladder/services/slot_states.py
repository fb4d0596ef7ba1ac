"""
Availability tri-state cycle.

One user's week is a single map ``slot -> SlotEntry``; a slot absent from the
map is UNSET. Two gestures mutate it:

  single click on own slot:  UNSET -> AVAILABLE -> UNAVAILABLE -> UNSET
  double click on own slot:  set me + partner AVAILABLE (partner tagged as
                             set by me), or, if I had already set the
                             partner's slot, remove that partner entry.

Boards are treated as values: transitions return new boards.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from ladder.utils.time_slots import slot_key


class SlotState(str, Enum):
    UNSET = "unset"
    AVAILABLE = "available"
    UNAVAILABLE = "not_available"


_CYCLE = {
    SlotState.UNSET: SlotState.AVAILABLE,
    SlotState.AVAILABLE: SlotState.UNAVAILABLE,
    SlotState.UNAVAILABLE: SlotState.UNSET,
}


def next_state(state: SlotState) -> SlotState:
    return _CYCLE[state]


@dataclass(frozen=True)
class SlotEntry:
    state: SlotState
    set_by: Optional[str] = None


class SlotBoard:
    """Per-user slot states keyed by canonical slot key."""

    def __init__(self, owner_id: str, entries: Optional[Dict[str, SlotEntry]] = None):
        self.owner_id = owner_id
        self._entries: Dict[str, SlotEntry] = {
            k: v for k, v in (entries or {}).items() if v.state is not SlotState.UNSET
        }

    @classmethod
    def from_rows(cls, rows: Iterable, owner_id: str) -> "SlotBoard":
        """Build from Availability rows (``start_at``, ``availability``, ``set_by_user_id``)."""
        entries = {}
        for row in rows:
            entries[slot_key(row.start_at)] = SlotEntry(
                state=SlotState(row.availability),
                set_by=row.set_by_user_id or owner_id,
            )
        return cls(owner_id, entries)

    def state(self, slot: str) -> SlotState:
        entry = self._entries.get(slot)
        return entry.state if entry else SlotState.UNSET

    def entry(self, slot: str) -> Optional[SlotEntry]:
        return self._entries.get(slot)

    def with_entry(self, slot: str, entry: Optional[SlotEntry]) -> "SlotBoard":
        entries = dict(self._entries)
        if entry is None or entry.state is SlotState.UNSET:
            entries.pop(slot, None)
        else:
            entries[slot] = entry
        return SlotBoard(self.owner_id, entries)

    def items(self) -> Iterator[Tuple[str, SlotEntry]]:
        return iter(sorted(self._entries.items()))

    def available(self) -> List[str]:
        return [k for k, e in self.items() if e.state is SlotState.AVAILABLE]

    def unavailable(self) -> List[str]:
        return [k for k, e in self.items() if e.state is SlotState.UNAVAILABLE]

    def set_by_other(self) -> List[str]:
        return [k for k, e in self.items() if e.set_by not in (None, self.owner_id)]

    def set_by(self, actor_id: str) -> List[str]:
        return [k for k, e in self.items() if e.set_by == actor_id]

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other) -> bool:
        if not isinstance(other, SlotBoard):
            return NotImplemented
        return self.owner_id == other.owner_id and self._entries == other._entries


def cycle_own_slot(mine: SlotBoard, slot: str, me: str) -> SlotBoard:
    """Single click by the board's owner."""
    return mine.with_entry(slot, SlotEntry(next_state(mine.state(slot)), set_by=me))


def toggle_pair_available(
    mine: SlotBoard, partner: SlotBoard, slot: str, me: str
) -> Tuple[SlotBoard, SlotBoard]:
    """Double click: mark both of us available, or undo a partner mark I made."""
    partner_entry = partner.entry(slot)
    if partner_entry is not None and partner_entry.set_by == me and partner.owner_id != me:
        return mine, partner.with_entry(slot, None)

    mine = mine.with_entry(slot, SlotEntry(SlotState.AVAILABLE, set_by=me))
    if partner.owner_id != me:
        partner = partner.with_entry(slot, SlotEntry(SlotState.AVAILABLE, set_by=me))
    return mine, partner


def is_editable(slot_start: datetime, now: datetime, ladder_end: Optional[datetime]) -> bool:
    """Past slots and slots at/after the ladder end date are read-only."""
    if slot_start < now:
        return False
    if ladder_end is not None and slot_start >= ladder_end:
        return False
    return True
