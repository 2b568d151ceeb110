"""API catalog and endpoint test proxy."""

from apihub._version import __version__

__all__ = ["__version__"]
