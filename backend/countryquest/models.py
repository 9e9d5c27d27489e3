from dataclasses import dataclass, field
import math
import time
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from countryquest.catalog import ALL_REGIONS, Entity
from countryquest.errors import InvalidConfig, RoomFull

SLOTS = (1, 2)
DRAW = 'draw'
MAX_CLUE_DURATION = 600


@dataclass(frozen=True)
class ClueDescriptor:
    key: str
    label: str

    def to_dict(self) -> Dict[str, str]:
        return {'key': self.key, 'label': self.label}


# Reveal order, vaguest first. Schedules always follow this order.
CLUE_MASTER: Tuple[ClueDescriptor, ...] = (
    ClueDescriptor('region', 'Region'),
    ClueDescriptor('population', 'Population'),
    ClueDescriptor('language', 'Language'),
    ClueDescriptor('currency', 'Currency'),
    ClueDescriptor('main_export', 'Main Export'),
    ClueDescriptor('fact', 'Fun Fact'),
    ClueDescriptor('cities', 'Major Cities'),
    ClueDescriptor('flag', 'Flag'),
)
CLUE_KEYS: Tuple[str, ...] = tuple(d.key for d in CLUE_MASTER)


def build_clue_schedule(enabled_keys: Iterable[str], clue_count: int) -> List[ClueDescriptor]:
    """Filter the master list by ``enabled_keys`` and keep the first ``clue_count``."""
    enabled = set(enabled_keys)
    return [d for d in CLUE_MASTER if d.key in enabled][:clue_count]


def slot_key(slot: int) -> str:
    return f"slot{slot}"


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class SessionConfig:
    clue_duration: float
    clue_count: int
    clues: Tuple[str, ...]
    regions: Tuple[str, ...] = (ALL_REGIONS,)
    max_rounds: Optional[int] = None

    @property
    def schedule(self) -> List[ClueDescriptor]:
        return build_clue_schedule(self.clues, self.clue_count)

    @classmethod
    def from_payload(cls, data: Any, default_duration: float = 15, default_count: int = len(CLUE_MASTER),
                     max_duration: float = MAX_CLUE_DURATION,
                     min_enabled_clues: int = 1) -> 'SessionConfig':
        """Validate a host-submitted config. Raises InvalidConfig on the first problem."""
        if not isinstance(data, dict):
            raise InvalidConfig('config must be an object')

        duration = data.get('clue_duration', default_duration)
        if not _is_number(duration) or not math.isfinite(duration) or not 0 < duration <= max_duration:
            raise InvalidConfig(f'clue_duration must be a number of seconds in (0, {max_duration}]')

        count = data.get('clue_count', default_count)
        if not _is_int(count) or not 1 <= count <= len(CLUE_MASTER):
            raise InvalidConfig(f"clue_count must be between 1 and {len(CLUE_MASTER)}")

        clues = data.get('clues', list(CLUE_KEYS))
        if not isinstance(clues, (list, tuple)) or not all(isinstance(c, str) for c in clues):
            raise InvalidConfig('clues must be a list of clue keys')
        enabled = tuple(k for k in CLUE_KEYS if k in set(clues))
        threshold = max(1, min_enabled_clues)
        if len(enabled) < threshold:
            raise InvalidConfig(f"enable at least {threshold} clue(s) from {list(CLUE_KEYS)}")

        regions = data.get('regions', [ALL_REGIONS])
        if not isinstance(regions, (list, tuple)) or not all(isinstance(r, str) for r in regions):
            raise InvalidConfig('regions must be a list of region names')
        regions = tuple(r for r in regions if r.strip())
        if not regions:
            raise InvalidConfig(f"enable at least one region or '{ALL_REGIONS}'")

        max_rounds = data.get('max_rounds')
        if max_rounds is not None and (not _is_int(max_rounds) or max_rounds < 1):
            raise InvalidConfig('max_rounds must be a positive integer or null')

        return cls(
            clue_duration=duration,
            clue_count=count,
            clues=enabled,
            regions=regions,
            max_rounds=max_rounds,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'clue_duration': self.clue_duration,
            'clue_count': self.clue_count,
            'clues': list(self.clues),
            'regions': list(self.regions),
            'max_rounds': self.max_rounds,
            'schedule': [d.to_dict() for d in self.schedule],
        }


@dataclass
class RoundState:
    target: Optional[Entity] = None
    # Snapshot taken at round start; later config changes apply to the next round
    schedule: List[ClueDescriptor] = field(default_factory=list)
    clue_duration: float = 0
    clue_index: int = 0
    clue_deadline: Optional[float] = None


def promote_host(session: 'Session') -> Optional[str]:
    """Return who should hold host authority given the current slots.

    The current host keeps it while seated; otherwise the occupant of the
    lowest-numbered slot takes over, or nobody when the session is empty.
    """
    if session.host is not None and session.slot_of(session.host) is not None:
        return session.host
    for slot in SLOTS:
        if session.slots[slot] is not None:
            return session.slots[slot]
    return None


class Session:
    """State for one two-seat match. Mutated only through the game coordinator."""

    def __init__(self, session_id: str, now: float = None):
        self.session_id = session_id
        self.slots: Dict[int, Optional[str]] = {slot: None for slot in SLOTS}
        self.host: Optional[str] = None
        self.ready: Set[str] = set()
        self.config: Optional[SessionConfig] = None
        self.active = False
        self.scores: Dict[int, int] = {slot: 0 for slot in SLOTS}
        self.round = RoundState()
        self.rounds_completed = 0
        self.match_over = False
        self.created_at = time.time() if now is None else now
        # Pending clue transition, owned 1:1 by this session
        self.timer = None

    def __repr__(self):
        return f"<Session {self.session_id} slots={self.slots} active={self.active}>"

    # ---- membership ----

    def slot_of(self, sid: str) -> Optional[int]:
        for slot in SLOTS:
            if self.slots[slot] == sid:
                return slot
        return None

    def other_occupant(self, sid: str) -> Optional[str]:
        for slot in SLOTS:
            occupant = self.slots[slot]
            if occupant is not None and occupant != sid:
                return occupant
        return None

    @property
    def occupants(self) -> List[str]:
        return [self.slots[s] for s in SLOTS if self.slots[s] is not None]

    @property
    def is_full(self) -> bool:
        return len(self.occupants) == len(SLOTS)

    @property
    def is_empty(self) -> bool:
        return not self.occupants

    def is_host(self, sid: str) -> bool:
        return sid is not None and self.host == sid

    def join(self, sid: str) -> int:
        """Seat ``sid`` in the lowest free slot; first occupant becomes host."""
        for slot in SLOTS:
            if self.slots[slot] is None:
                self.slots[slot] = sid
                if self.host is None:
                    self.host = sid
                return slot
        raise RoomFull()

    def leave(self, sid: str) -> Tuple[Optional[int], bool]:
        """Free the slot held by ``sid``. Returns (slot, host_changed)."""
        slot = self.slot_of(sid)
        if slot is None:
            return None, False
        self.slots[slot] = None
        self.ready.discard(sid)
        previous = self.host
        self.host = promote_host(self)
        host_changed = previous != self.host
        # A host may not stay readied up without a config
        if host_changed and self.config is None and self.host is not None:
            self.ready.discard(self.host)
        return slot, host_changed

    # ---- readiness ----

    def set_ready(self, sid: str, is_ready: bool) -> None:
        if self.slot_of(sid) is None:
            return
        if is_ready:
            self.ready.add(sid)
        else:
            self.ready.discard(sid)

    def all_ready(self) -> bool:
        return self.is_full and all(sid in self.ready for sid in self.occupants)

    def ready_state(self) -> Dict[str, bool]:
        return {slot_key(s): self.slots[s] is not None and self.slots[s] in self.ready for s in SLOTS}

    def score_board(self) -> Dict[str, int]:
        return {slot_key(s): self.scores[s] for s in SLOTS}

    def new_match(self) -> None:
        self.scores = {slot: 0 for slot in SLOTS}
        self.rounds_completed = 0
        self.match_over = False

    # ---- round termination ----

    def stop(self) -> bool:
        """End the active round and cancel its pending timer. Safe to repeat.

        Returns True only for the call that actually deactivated the round.
        """
        was_active = self.active
        self.active = False
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None
        return was_active

    def to_dict(self) -> Dict[str, Any]:
        return {
            'session_id': self.session_id,
            'occupied': {slot_key(s): self.slots[s] is not None for s in SLOTS},
            'host_slot': self.slot_of(self.host) if self.host else None,
            'ready': self.ready_state(),
            'config': self.config.to_dict() if self.config else None,
            'active': self.active,
            'scores': self.score_board(),
            'rounds_completed': self.rounds_completed,
            'match_over': self.match_over,
        }
