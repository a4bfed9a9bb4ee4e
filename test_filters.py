"""
Test Point Filter
=================

Filter stages over in-memory collections: user, date, trip and type.

Usage:
    pytest test_filters.py
"""

from datetime import date
from zoneinfo import ZoneInfo

import pytest

from bufeo_store import ALL_POINT_TYPES, ObservationPoint, PointType, Trip
from bufeo_pipeline import (
    FilterSelection,
    PointFilter,
    aggregate,
    filter_points,
    filter_trips,
    parse_date,
    parse_point_types,
)


TRIPS = (
    Trip.from_dict({'id': 't1', 'user_id': 'u1', 'start_time': '2024-01-01T08:00:00Z'}),
    Trip.from_dict({'id': 't2', 'user_id': 'u1', 'start_time': '2024-01-05T08:00:00Z'}),
    Trip.from_dict({'id': 't3', 'user_id': 'u2', 'start_time': '2024-01-03T08:00:00Z'}),
)


def make_point(point_id, trip_id, point_type, created_at='2024-01-01T10:00:00Z', **extra):
    row = {'id': point_id, 'trip_id': trip_id, 'type': point_type, 'created_at': created_at,
           'latitude': -14.5, 'longitude': -65.0}
    row.update(extra)
    return ObservationPoint.from_dict(row)


POINTS = (
    make_point('p1', 't1', 'Inicio', '2024-01-01T08:00:00Z'),
    make_point('p2', 't1', 'Avistamiento', '2024-01-01T09:00:00Z', adults=2, calves=1),
    make_point('p3', 't1', 'Peligro', '2024-01-01T23:59:00Z', danger_type='net', health_status='injured'),
    make_point('p4', 't2', 'Peligro', '2024-01-05T12:00:00Z', danger_type='net'),
    make_point('p5', 't3', 'Avistamiento', '2024-01-03T12:00:00Z', adults=4),
    make_point('p6', 'missing-trip', 'Fin', '2024-01-02T00:00:01Z'),
    make_point('p7', None, 'Avistamiento', None),
    make_point('p8', 't1', 'Desconocido'),
)

SELECTIONS = [
    FilterSelection(),
    FilterSelection(user_id='u1'),
    FilterSelection(user_id='nobody'),
    FilterSelection(trip_id='t2'),
    FilterSelection(start_date=date(2024, 1, 1), end_date=date(2024, 1, 1)),
    FilterSelection(start_date=date(2024, 1, 3)),
    FilterSelection(end_date=date(2024, 1, 2)),
    FilterSelection(start_date=date(2024, 1, 5), end_date=date(2024, 1, 1)),
    FilterSelection(visible_types=frozenset()),
    FilterSelection(user_id='u1', trip_id='t1', visible_types={PointType.HAZARD}),
]


def ids(points):
    return [p.id for p in points]


@pytest.mark.parametrize("selection", SELECTIONS)
def test_filtered_points_are_subset_in_original_order(selection):
    result = filter_points(POINTS, TRIPS, selection)

    assert all(point in POINTS for point in result)
    positions = [POINTS.index(point) for point in result]
    assert positions == sorted(positions)


def test_no_restriction_keeps_every_known_type():
    result = filter_points(POINTS, TRIPS, FilterSelection())

    # p8 has a type outside the closed set and is never plotted
    assert ids(result) == ['p1', 'p2', 'p3', 'p4', 'p5', 'p6', 'p7']


def test_user_stage_uses_trip_ownership():
    result = PointFilter.by_user(POINTS, TRIPS, 'u1')

    assert ids(result) == ['p1', 'p2', 'p3', 'p4', 'p8']


def test_dangling_and_missing_trip_fail_user_stage():
    result = PointFilter.by_user(POINTS, TRIPS, 'u2')

    assert ids(result) == ['p5']


def test_unknown_user_matches_nothing():
    assert filter_points(POINTS, TRIPS, FilterSelection(user_id='nobody')) == ()


def test_type_filter_is_idempotent():
    types = frozenset({PointType.SIGHTING, PointType.HAZARD})
    once = PointFilter.by_type(POINTS, types)
    twice = PointFilter.by_type(once, types)

    assert once == twice
    assert ids(once) == ['p2', 'p3', 'p4', 'p5', 'p7']


def test_resetting_user_equals_never_restricting():
    never = FilterSelection()
    reset = FilterSelection().with_user('u1').with_user('all')

    assert reset.user_id is None
    assert PointFilter.by_user(POINTS, TRIPS, reset.user_id) == PointFilter.by_user(POINTS, TRIPS, never.user_id)
    assert filter_points(POINTS, TRIPS, reset) == filter_points(POINTS, TRIPS, never)


def test_selecting_user_clears_trip():
    selection = FilterSelection(user_id='u1', trip_id='t1').with_user('u2')

    assert selection.user_id == 'u2'
    assert selection.trip_id is None


def test_date_range_is_inclusive_of_whole_days():
    selection = FilterSelection().with_dates('2024-01-01', '2024-01-01')
    result = filter_points(POINTS, TRIPS, selection)

    assert 'p3' in ids(result)      # 2024-01-01T23:59:00Z
    assert 'p6' not in ids(result)  # 2024-01-02T00:00:01Z


def test_single_bound_restricts_one_side_only():
    after = filter_points(POINTS, TRIPS, FilterSelection(start_date=date(2024, 1, 3)))
    before = filter_points(POINTS, TRIPS, FilterSelection(end_date=date(2024, 1, 1)))

    assert ids(after) == ['p4', 'p5']
    assert ids(before) == ['p1', 'p2', 'p3']


def test_date_filter_excludes_points_without_timestamp():
    result = filter_points(POINTS, TRIPS, FilterSelection(start_date=date(2000, 1, 1)))

    assert 'p7' not in ids(result)


def test_reversed_date_range_matches_nothing():
    selection = FilterSelection(start_date=date(2024, 1, 5), end_date=date(2024, 1, 1))

    assert filter_points(POINTS, TRIPS, selection) == ()


def test_day_bounds_follow_timezone():
    la_paz = ZoneInfo('America/La_Paz')  # UTC-4
    selection = FilterSelection().with_dates('2024-01-01', '2024-01-01')

    result = filter_points(POINTS, TRIPS, selection, tz=la_paz)

    # 2024-01-02T00:00:01Z is still 2024-01-01 20:00 local time
    assert 'p6' in ids(result)
    # 2024-01-01T08:00:00Z is 04:00 local time, still inside the day
    assert 'p1' in ids(result)


def test_trip_with_no_points_gives_empty_sequence_and_zero_stats():
    trips = TRIPS + (Trip(id='t-empty', user_id='u1'),)
    result = filter_points(POINTS, trips, FilterSelection(trip_id='t-empty'))
    stats = aggregate(result)

    assert result == ()
    assert stats.adults == 0
    assert stats.calves == 0
    assert stats.danger_count == 0
    assert stats.danger_types == {}
    assert stats.health_status == {}


def test_toggle_type_twice_restores_selection():
    selection = FilterSelection()
    toggled = selection.toggle_type(PointType.HAZARD)

    assert PointType.HAZARD not in toggled.visible_types
    assert toggled.toggle_type(PointType.HAZARD) == selection


def test_filter_trips_by_owner():
    assert [t.id for t in filter_trips(TRIPS, 'u1')] == ['t1', 't2']
    assert filter_trips(TRIPS, None) == TRIPS
    assert filter_trips(TRIPS, 'nobody') == ()


def test_selection_from_dict():
    selection = FilterSelection.from_dict({
        'user_id': 'u1',
        'trip_id': 'all',
        'start_date': '2024-01-01',
        'end_date': '',
        'visible_types': {'Avistamiento': True, 'Peligro': False, 'Inicio': True},
    })

    assert selection.user_id == 'u1'
    assert selection.trip_id is None
    assert selection.start_date == date(2024, 1, 1)
    assert selection.end_date is None
    assert selection.visible_types == {PointType.SIGHTING, PointType.START}


def test_selection_to_dict_lists_every_layer():
    data = FilterSelection(visible_types={PointType.END}).to_dict()

    assert data['visible_types'] == {
        'Inicio': False, 'Fin': True, 'Avistamiento': False, 'Peligro': False,
    }


def test_parse_helpers():
    assert parse_date(None) is None
    assert parse_date('  ') is None
    assert parse_date('2024-03-04T10:00:00Z') == date(2024, 3, 4)
    assert parse_point_types(['hazard', 'Fin']) == {PointType.HAZARD, PointType.END}
    assert parse_point_types(ALL_POINT_TYPES) == ALL_POINT_TYPES

    with pytest.raises(ValueError):
        parse_date('yesterday')
    with pytest.raises(ValueError):
        parse_point_types(['whale'])
