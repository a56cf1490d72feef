"""pidone: a container entrypoint for one managed service."""

__version__ = "0.5.0"
