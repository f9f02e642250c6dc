"""
Configuration loading for cmdb_devkit.

Settings come from the process environment layered over an optional
``.env`` file in the workspace root. See :mod:`cmdb_devkit.config.loader`
for implementation details.
"""

from .loader import ConfigError, DevConfig, find_workspace_root, load_config  # noqa: F401
