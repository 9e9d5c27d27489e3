import threading
import time

import pytest

from countryquest.catalog import Catalog
from countryquest.models import DRAW, Session, SessionConfig
from countryquest.services.games.scheduler import RoundScheduler

from conftest import RecordingBroadcaster, make_entity


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def scheduler(clock):
    catalog = Catalog([make_entity('France', 'Europe', 'FR'), make_entity('Japan', 'Asia', 'JP')])
    return RoundScheduler(RecordingBroadcaster(), catalog, clock=clock)


def _session(config=None):
    session = Session('R1')
    session.join('a')
    session.join('b')
    session.config = config or SessionConfig.from_payload(
        {'clue_count': 3, 'clue_duration': 15, 'clues': ['region', 'currency', 'flag']}
    )
    return session


def test_start_resets_round_state(scheduler, clock):
    session = _session()
    session.ready = {'a', 'b'}
    session.round.clue_index = 2
    scheduler.start(session)

    assert session.active is True
    assert session.ready == set()
    assert session.round.clue_index == 0
    assert session.round.target is not None
    assert session.round.clue_deadline == clock.now + 15
    assert session.timer is not None and session.timer.clue_index == 0

    started = scheduler.broadcaster.events('round_started')
    assert len(started) == 1
    assert started[0]['clue_index'] == 0
    assert started[0]['clue_duration'] == 15
    assert [d['key'] for d in started[0]['schedule']] == ['region', 'currency', 'flag']


def test_start_uses_region_filter(scheduler):
    session = _session(SessionConfig.from_payload({'regions': ['Asia']}))
    scheduler.start(session)
    assert session.round.target.name == 'Japan'


def test_clues_advance_then_draw(scheduler):
    session = _session()
    scheduler.start(session)
    first_deadline = session.round.clue_deadline

    scheduler.fire(session.timer)
    assert session.round.clue_index == 1
    assert session.round.clue_deadline == first_deadline + 15
    scheduler.fire(session.timer)
    assert session.round.clue_index == 2
    assert [p['clue_index'] for p in scheduler.broadcaster.events('clue_advanced')] == [1, 2]

    scheduler.fire(session.timer)
    assert session.active is False
    assert session.timer is None
    assert session.rounds_completed == 1
    over = scheduler.broadcaster.events('round_over')
    assert len(over) == 1
    assert over[0]['winner'] == DRAW
    assert over[0]['final'] is False


def test_stale_timer_after_stop_is_ignored(scheduler):
    session = _session()
    scheduler.start(session)
    stale = session.timer
    scheduler.stop(session)
    assert stale.cancelled is True

    scheduler.fire(stale)
    assert session.round.clue_index == 0
    assert scheduler.broadcaster.events('clue_advanced') == []


def test_old_timer_cannot_touch_new_round(scheduler):
    session = _session()
    scheduler.start(session)
    old = session.timer
    scheduler.start(session)
    new = session.timer
    assert old.cancelled and not new.cancelled

    scheduler.fire(old)
    assert session.round.clue_index == 0
    scheduler.fire(new)
    assert session.round.clue_index == 1


def test_finish_only_once(scheduler):
    session = _session()
    scheduler.start(session)
    assert scheduler.finish(session, 1) is True
    assert scheduler.finish(session, DRAW) is False
    assert session.rounds_completed == 1
    assert len(scheduler.broadcaster.events('round_over')) == 1


def test_max_rounds_marks_final_and_next_start_resets(scheduler):
    session = _session(SessionConfig.from_payload({'clue_count': 1, 'max_rounds': 2}))
    session.scores[1] = 1
    scheduler.start(session)
    scheduler.fire(session.timer)
    assert session.match_over is False
    scheduler.start(session)
    scheduler.fire(session.timer)
    assert session.match_over is True
    assert scheduler.broadcaster.events('round_over')[-1]['final'] is True

    scheduler.start(session)
    assert session.match_over is False
    assert session.rounds_completed == 0
    assert session.scores == {1: 0, 2: 0}


class FakeEvent:
    """Event whose waits advance the fake clock instead of blocking."""

    def __init__(self, clock, waits):
        self.clock = clock
        self.waits = waits
        self.flag = False

    def set(self):
        self.flag = True

    def wait(self, timeout=None):
        self.waits.append(timeout)
        if not self.flag:
            self.clock.now += timeout
        return self.flag


def test_background_worker_waits_until_deadline(clock):
    spawned = []
    waits = []
    catalog = Catalog([make_entity('France')])
    sched = RoundScheduler(RecordingBroadcaster(), catalog, clock=clock,
                           start_task=lambda fn, *args: spawned.append((fn, args)),
                           create_event=lambda: FakeEvent(clock, waits))
    session = _session()
    sched.start(session)
    assert len(spawned) == 1

    fn, args = spawned.pop()
    fn(*args)
    assert waits == [15]
    assert session.round.clue_index == 1
    assert len(spawned) == 1


def test_cancelled_worker_returns_without_waiting_out_delay(clock):
    spawned = []
    catalog = Catalog([make_entity('France')])
    sched = RoundScheduler(RecordingBroadcaster(), catalog, clock=clock,
                           start_task=lambda fn, *args: spawned.append((fn, args)),
                           create_event=threading.Event)
    session = _session(SessionConfig.from_payload({'clue_duration': 600}))
    sched.start(session)
    fn, args = spawned.pop()
    handle = args[0]

    sched.start(session)
    assert handle.cancelled

    began = time.monotonic()
    fn(*args)
    assert time.monotonic() - began < 5
    assert session.round.clue_index == 0
    assert session.timer is not handle
    assert sched.broadcaster.events('clue_advanced') == []


def test_cancel_wakes_waiting_thread(clock):
    catalog = Catalog([make_entity('France')])
    sched = RoundScheduler(RecordingBroadcaster(), catalog, clock=clock)
    session = _session(SessionConfig.from_payload({'clue_duration': 600}))
    sched.start(session)
    handle = session.timer

    worker = threading.Thread(target=sched._worker, args=(handle,), daemon=True)
    worker.start()
    sched.stop(session)
    worker.join(timeout=5)
    assert not worker.is_alive()
