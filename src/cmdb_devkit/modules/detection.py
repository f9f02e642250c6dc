"""
Attribution of changed files to the modules that own them.
"""

from __future__ import annotations

from typing import Iterable, List

from .discovery import ModuleMap


def affected_modules(changed_files: Iterable[str], module_map: ModuleMap) -> List[str]:
    """Return the module directories owning at least one changed file.

    Parameters
    ----------
    changed_files : Iterable[str]
        Paths relative to the source root, as printed by git.
    module_map : ModuleMap
        The discovered modules.

    Returns
    -------
    List[str]
        Module directories in order of first encounter, without
        duplicates. Files outside every module are ignored.
    """
    result: List[str] = []
    for path in changed_files:
        if not path:
            continue
        owner = module_map.owner_of(path)
        if owner is not None and owner not in result:
            result.append(owner)
    return result
