"""
Bufeo CLI - One-shot queries against the observation store.

Loads the collections once, applies a filter selection and prints the
resulting dashboard view (or the selectable users/trips) as JSON.

Usage:
    bufeo-cli --config config/monitor_config.yaml snapshot --user <id> --start 2024-01-01
    bufeo-cli --config config/monitor_config.yaml users
    bufeo-cli --config config/monitor_config.yaml trips --user <id>
"""

__version__ = "1.0.0"
