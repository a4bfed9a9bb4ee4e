"""
Test Session Dispatch
=====================

Typed append events and bulk loads applied through dispatch().

Usage:
    pytest test_session.py
"""

import pytest

from bufeo_store import EntityKind, ObservationPoint, Trip, UserProfile
from bufeo_pipeline import (
    AppendPoint,
    AppendTrip,
    AppendUser,
    CollectionLoaded,
    SessionState,
    append_event,
    dispatch,
    replay,
)


def test_append_point_keeps_arrival_order():
    state = replay(SessionState(), [
        AppendPoint(ObservationPoint(id='p1')),
        AppendPoint(ObservationPoint(id='p2')),
    ])

    assert [p.id for p in state.points] == ['p1', 'p2']


def test_append_trip_is_prepended():
    state = SessionState(trips=(Trip(id='t1'),))

    state = dispatch(state, AppendTrip(Trip(id='t2')))

    assert [t.id for t in state.trips] == ['t2', 't1']


def test_duplicate_insert_returns_same_state():
    state = SessionState(users=(UserProfile(id='u1', full_name='Ana'),))

    new_state = dispatch(state, AppendUser(UserProfile(id='u1', full_name='Ana B.')))

    assert new_state is state
    assert state.users[0].full_name == 'Ana'


def test_dispatch_never_mutates_input():
    state = SessionState()

    dispatch(state, AppendPoint(ObservationPoint(id='p1')))

    assert state.points == ()


def test_collection_loaded_replaces_wholesale():
    state = SessionState(points=(ObservationPoint(id='old'),), users=(UserProfile(id='u1'),))

    state = dispatch(state, CollectionLoaded(EntityKind.POINTS, [ObservationPoint(id='new')]))

    assert [p.id for p in state.points] == ['new']
    assert [u.id for u in state.users] == ['u1']


def test_append_event_by_kind():
    assert isinstance(append_event(EntityKind.USERS, UserProfile(id='u')), AppendUser)
    assert isinstance(append_event('trips', Trip(id='t')), AppendTrip)
    assert isinstance(append_event(EntityKind.POINTS, ObservationPoint(id='p')), AppendPoint)


def test_unknown_event_raises():
    with pytest.raises(TypeError):
        dispatch(SessionState(), object())


def test_state_queries():
    state = SessionState(trips=(Trip(id='t1'), Trip(id='t2')))

    assert state.contains(EntityKind.TRIPS, 't2')
    assert not state.contains(EntityKind.POINTS, 't2')
    assert state.collection('trips') == state.trips
    assert state.counts() == {'users': 0, 'trips': 2, 'points': 0}
