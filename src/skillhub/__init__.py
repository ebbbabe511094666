"""skillhub: ingest, resolve and render agent skill documents."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("skillhub")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"
