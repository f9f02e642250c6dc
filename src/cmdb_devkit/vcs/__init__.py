"""
Version control integration.

Contains the :class:`GitClient` used to clone repositories, query the
current branch and collect the changed files of the source checkout.
"""

from .git_client import ChangeSet, GitClient, GitError, authenticated_url  # noqa: F401
