"""teamsync - local cache and optimistic role updates for a site's team."""

__version__ = "0.1.0"
