"""Status page backend — scheduled HTTP health checks behind a small JSON API."""

__version__ = "0.1.0"
