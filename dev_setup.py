#!/usr/bin/env python
"""
Thin wrapper script to invoke the dev-setup command.

Running ``python dev_setup.py`` is equivalent to running the
``dev-setup`` console script installed via ``pyproject.toml``.
"""

from cmdb_devkit.cli import setup_main


if __name__ == "__main__":
    setup_main(prog_name="dev-setup")
