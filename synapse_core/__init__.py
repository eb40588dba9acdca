"""
Core package for the Synapse assistant directive protocol.

Holds the pieces that have to stay correct regardless of what the model
emits: directive scanning, slug and date resolution, action dispatch, and
session reconciliation.
"""

from importlib import metadata


def get_version() -> str:
    """Return the installed project version."""
    try:
        return metadata.version("synapse-directives")
    except metadata.PackageNotFoundError:
        return "0.0.0"


__all__ = ["get_version"]
