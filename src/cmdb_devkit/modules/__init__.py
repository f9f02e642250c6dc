"""
Maven module discovery and change attribution.

See :mod:`cmdb_devkit.modules.discovery` for building the module map and
:mod:`cmdb_devkit.modules.detection` for mapping changed files to modules.
"""

from .detection import affected_modules  # noqa: F401
from .discovery import ModuleMap, discover_modules, normalize_module_dir  # noqa: F401
