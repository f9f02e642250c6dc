"""
Deployment of built artifacts into the exploded webapp.
"""

from .batch import BatchReport, ModuleOutcome, deploy_modules  # noqa: F401
from .deployer import DeployError, DeployResult, deploy_artifact  # noqa: F401
