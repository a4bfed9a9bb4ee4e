"""
Bufeo CLI - Main entry point.

Provides a command-line interface for inspecting the observation store
through the same filter and aggregation pipeline the live service uses.
"""

import argparse
import json
import sys
from datetime import tzinfo
from functools import partial
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from bufeo_store import DataStoreClient, EntityKind, Trip
from bufeo_pipeline import (
    ChartMode,
    CollectionLoaded,
    FilterSelection,
    SessionState,
    UIState,
    build_view,
    dispatch,
)
from bufeo_pipeline.filters import normalize_restriction
from bufeo_pipeline.view import DashboardView, Option, trip_label, trip_options, user_options
from bufeo_monitor import MonitorConfig, create_store_client


def load_state(client: DataStoreClient, kinds: Optional[List[EntityKind]] = None) -> SessionState:
    """
    Bulk-load collections into a fresh session state.

    Args:
        client: Data store client
        kinds: Collections to load (default: all)
    """
    state = SessionState()
    for kind in kinds or list(EntityKind):
        state = dispatch(state, CollectionLoaded(kind, client.fetch_all(kind)))
    return state


def build_selection(args: argparse.Namespace) -> FilterSelection:
    """
    Filter selection from snapshot arguments.

    Raises:
        ValueError: On malformed dates or unknown point types
    """
    data: Dict[str, Any] = {
        'user_id': args.user,
        'trip_id': args.trip,
        'start_date': args.start,
        'end_date': args.end,
    }
    if args.types:
        data['visible_types'] = [name.strip() for name in args.types.split(',') if name.strip()]
    return FilterSelection.from_dict(data)


def snapshot_view(client: DataStoreClient, config: MonitorConfig, selection: FilterSelection,
                  ui: UIState) -> DashboardView:
    """Load every collection and build the view, resolving photo paths against the store buckets."""
    return build_view(
        load_state(client),
        selection,
        ui,
        tz=config.display.tzinfo,
        photo_resolver=partial(client.photo_urls, buckets=config.store.photo_buckets),
    )


def list_trips(trips: Sequence[Trip], user: Optional[str], tz: tzinfo) -> Tuple[Option, ...]:
    """Trip options for one user, or every trip when unrestricted."""
    user_id = normalize_restriction(user)
    if user_id is None:
        return tuple(Option(value=trip.id, label=trip_label(trip, tz)) for trip in trips)
    return trip_options(trips, user_id, tz)


def print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Bufeo CLI - Query observations through the dashboard pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Full dashboard view (no restriction)
  bufeo-cli snapshot

  # One user's sightings and hazards during January
  bufeo-cli snapshot --user 7d1c... --start 2024-01-01 --end 2024-01-31 --types Avistamiento,Peligro

  # Health status histogram instead of hazard types
  bufeo-cli snapshot --chart health

  # Selector contents
  bufeo-cli users
  bufeo-cli trips --user 7d1c...
"""
    )

    # Global arguments
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("config/monitor_config.yaml"),
        help="Path to monitor configuration YAML (default: config/monitor_config.yaml)"
    )

    # Subcommands
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    snapshot = subparsers.add_parser('snapshot', help='Print the dashboard view as JSON')
    snapshot.add_argument('--user', help="User id ('all' for no restriction)")
    snapshot.add_argument('--trip', help="Trip id ('all' for no restriction)")
    snapshot.add_argument('--start', help='Start date (YYYY-MM-DD, inclusive)')
    snapshot.add_argument('--end', help='End date (YYYY-MM-DD, inclusive)')
    snapshot.add_argument('--types', help='Comma-separated point types to show (default: all)')
    snapshot.add_argument(
        '--chart',
        choices=[mode.value for mode in ChartMode],
        default=None,
        help='Histogram shown in the chart (default: from config)'
    )

    subparsers.add_parser('users', help='List selectable users')

    trips = subparsers.add_parser('trips', help='List selectable trips')
    trips.add_argument('--user', help="Only trips of this user ('all' for every trip)")

    # Parse arguments
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Execute command
    try:
        config = MonitorConfig.from_yaml(args.config)
        client = create_store_client(config, with_push_channel=False)
        tz = config.display.tzinfo

        if args.command == 'snapshot':
            selection = build_selection(args)
            ui = UIState(chart_mode=ChartMode(args.chart or config.display.default_chart))
            view = snapshot_view(client, config, selection, ui)
            print_json(view.to_dict())

        elif args.command == 'users':
            state = load_state(client, [EntityKind.USERS])
            print_json([option.to_dict() for option in user_options(state.users)])

        elif args.command == 'trips':
            state = load_state(client, [EntityKind.TRIPS])
            print_json([option.to_dict() for option in list_trips(state.trips, args.user, tz)])

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
