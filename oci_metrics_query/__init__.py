"""
OCI metrics query resolution package.

This package turns partially templated OCI Monitoring query definitions into
backend-ready requests: template variable substitution, metadata lookups,
multi-value dimension expansion and automatic window/resolution selection.
"""

from .__version__ import __version__

__all__ = ["__version__"]
