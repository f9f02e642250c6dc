"""
Top-level package for cmdb_devkit.

The package bootstraps a CMDBuild development environment and hot-deploys
changed Maven modules into the running container. The command line entry
points live in :mod:`cmdb_devkit.cli`.
"""

__all__ = ["__version__"]

# The distribution metadata is the single source of the version number.
# Running from a plain checkout (PYTHONPATH=src) has no metadata.
try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("cmdbuild-devkit")
except PackageNotFoundError:
    __version__ = "0.1.0.dev0"
