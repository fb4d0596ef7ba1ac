"""
Proxy edit layer: editing another player's availability on their behalf.

While acting for someone, clicks never touch their persisted rows. They land
in an overlay keyed by slot, and the displayed state is a three-way merge:

    effective(slot) = overlay[slot] if slot was touched else base[slot]

Cycling walks the *effective* state, so repeated clicks go
available -> unavailable -> unset whatever was stored before.

On save the overlay becomes a payload, and ``plan_proxy_write`` decides what
may be deleted and inserted. A proxy write never deletes or overwrites a row
the owner set for themselves.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ladder.errors import BadRequestError
from ladder.services.slot_states import SlotState, next_state


class ProxyOverlay:
    def __init__(self, base: Optional[Dict[str, SlotState]] = None):
        self.base: Dict[str, SlotState] = dict(base or {})
        self.overlay: Dict[str, SlotState] = {}

    @classmethod
    def from_board(cls, board) -> "ProxyOverlay":
        return cls({slot: entry.state for slot, entry in board.items()})

    def effective(self, slot: str) -> SlotState:
        if slot in self.overlay:
            return self.overlay[slot]
        return self.base.get(slot, SlotState.UNSET)

    def is_touched(self, slot: str) -> bool:
        return slot in self.overlay

    def cycle(self, slot: str) -> SlotState:
        state = next_state(self.effective(slot))
        self.overlay[slot] = state
        return state

    def toggle_available(self, slot: str) -> SlotState:
        """Double click while acting: available clears, anything else becomes available."""
        if self.effective(slot) is SlotState.AVAILABLE:
            state = SlotState.UNSET
        else:
            state = SlotState.AVAILABLE
        self.overlay[slot] = state
        return state

    def reset(self) -> None:
        self.overlay.clear()

    def touched(self) -> List[str]:
        return sorted(self.overlay)

    def to_payload(self) -> Dict[str, List[str]]:
        payload: Dict[str, List[str]] = {"availableSlots": [], "unavailableSlots": [], "noneSlots": []}
        for slot in self.touched():
            state = self.overlay[slot]
            if state is SlotState.AVAILABLE:
                payload["availableSlots"].append(slot)
            elif state is SlotState.UNAVAILABLE:
                payload["unavailableSlots"].append(slot)
            else:
                payload["noneSlots"].append(slot)
        return payload


@dataclass
class ProxyPayload:
    available: List[datetime] = field(default_factory=list)
    unavailable: List[datetime] = field(default_factory=list)
    cleared: List[datetime] = field(default_factory=list)

    def validate(self) -> None:
        groups = [set(self.available), set(self.unavailable), set(self.cleared)]
        if groups[0] & groups[1] or groups[0] & groups[2] or groups[1] & groups[2]:
            raise BadRequestError("A slot cannot be in more than one state")

    def touched(self) -> List[datetime]:
        return sorted(set(self.available) | set(self.unavailable) | set(self.cleared))


@dataclass
class ProxyWritePlan:
    set_by: str
    delete_slots: List[datetime] = field(default_factory=list)
    inserts: List[Tuple[datetime, str]] = field(default_factory=list)
    preserved: List[datetime] = field(default_factory=list)


def plan_proxy_write(
    existing_rows: Iterable, payload: ProxyPayload, target_id: str, actor_id: str
) -> ProxyWritePlan:
    """Work out the delete/insert set for a proxy save.

    ``existing_rows`` are the target's Availability rows for the week.
    """
    payload.validate()
    rows_by_slot = {row.start_at: row for row in existing_rows}
    touched = payload.touched()
    plan = ProxyWritePlan(set_by=actor_id)

    if actor_id == target_id:
        plan.delete_slots = [s for s in touched if s in rows_by_slot]
        plan.inserts = _inserts(payload, skip=set())
        return plan

    self_set = {s for s, row in rows_by_slot.items() if row.is_self_set}
    plan.delete_slots = [s for s in touched if s in rows_by_slot and s not in self_set]
    plan.inserts = _inserts(payload, skip=self_set)
    plan.preserved = [s for s in touched if s in self_set]
    return plan


def _inserts(payload: ProxyPayload, skip: set) -> List[Tuple[datetime, str]]:
    out: List[Tuple[datetime, str]] = []
    for slot in sorted(set(payload.available)):
        if slot not in skip:
            out.append((slot, SlotState.AVAILABLE.value))
    for slot in sorted(set(payload.unavailable)):
        if slot not in skip:
            out.append((slot, SlotState.UNAVAILABLE.value))
    return out
