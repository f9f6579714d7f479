"""Two-replica synchronization between a WordPress site and a local post cache."""

__version__ = "0.1.0"
