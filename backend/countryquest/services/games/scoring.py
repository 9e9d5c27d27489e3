import logging
import re
from typing import Optional

from countryquest.models import Session
from countryquest.transport import Broadcaster
from .scheduler import RoundScheduler

logger = logging.getLogger(__name__)

_NOT_ALNUM = re.compile(r'[^a-z0-9]')


def normalize_guess(text: str) -> str:
    """Lowercase and drop everything but ASCII letters and digits.

    Accented letters are dropped too, not folded: "São Paulo" -> "sopaulo".
    """
    return _NOT_ALNUM.sub('', (text or '').lower())


def submit_guess(scheduler: RoundScheduler, broadcaster: Broadcaster, session: Session,
                 sid: str, guess: str) -> Optional[bool]:
    """Resolve a guess from ``sid``.

    Returns None when ignored (no active round or the sender has no seat),
    otherwise whether the guess was correct. A correct guess scores the
    sender's slot and ends the round; a miss is relayed verbatim to the
    other occupant only.
    """
    if not session.active:
        return None
    slot = session.slot_of(sid)
    if slot is None:
        return None

    target = session.round.target
    if normalize_guess(guess) == normalize_guess(target.name):
        session.scores[slot] += 1
        scheduler.finish(session, slot)
        return True

    opponent = session.other_occupant(sid)
    if opponent is not None:
        broadcaster.send_to(opponent, 'opponent_guess', {'slot': slot, 'guess': guess})
    logger.debug(f"[guess-miss] session={session.session_id} slot={slot}")
    return False
