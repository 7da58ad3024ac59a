"""
stocksync package initializer.

This package keeps a local cache of a dealership's AutoTrader stock, with a
registry fallback for vehicles that are not in stock.

The ``__version__`` attribute is read from the installed distribution
metadata; pyproject.toml is the single source of truth.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("stocksync")
except PackageNotFoundError:
    # Running from a source checkout without ``pip install -e .``
    __version__ = "0.0.0.dev"

__all__: list[str] = ["__version__"]
