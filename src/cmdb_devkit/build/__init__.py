"""
Build tool integrations: Maven for single modules and the external WAR
builder for full rebuilds.
"""

from .maven import ArtifactNotFoundError, BuildError, MavenBuilder  # noqa: F401
from .war import WarBuildError, WarBuilder, extract_war  # noqa: F401
