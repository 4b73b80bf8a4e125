"""
Cross-feature exceptions.

Feature-specific errors (Strava API, OAuth, webhook verification) live next
to the code that raises them.
"""


class ConfigurationError(Exception):
    """Required configuration is missing or invalid (credentials, challenge table)."""
    pass


class PersistenceError(Exception):
    """A database write failed and was rolled back."""
    pass
