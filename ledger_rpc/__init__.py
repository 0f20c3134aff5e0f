"""
ledger-rpc package.

Exposes:
- __version__: semantic version string (see ledger_rpc/version.py)
"""

from .version import __version__

__all__ = ["__version__"]
