"""
Strava sync configuration constants.

Contains all configuration values for backfill behavior.
"""


class SyncConfig:
    """Configuration for sync behavior."""

    # How many activities to fetch per API call
    ACTIVITIES_PER_PAGE = 100

    # Hard stop for one backfill (100 * 50 activities is plenty for 100 days)
    MAX_PAGES = 50

    # Widen the UTC query window so local-date edge activities are included
    WINDOW_SLACK_HOURS = 14
