#!/usr/bin/env python
"""
Thin wrapper script to invoke the dev-deploy command.

Running ``python dev_deploy.py`` is equivalent to running the
``dev-deploy`` console script installed via ``pyproject.toml``.
"""

from cmdb_devkit.cli import deploy_main


if __name__ == "__main__":
    deploy_main(prog_name="dev-deploy")
