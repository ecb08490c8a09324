"""Lookup protocols used by the reference resolver."""

from typing import Protocol


class LookupFailed(Exception):
    """A registry or VCS lookup failed; wrapped into ResolutionError by the resolver."""


class RegistryClient(Protocol):
    """Protocol for package registry clients."""

    async def versions(self, package: str) -> list[str]:
        """List the non-deprecated versions of a package.

        Args:
            package: Package name

        Returns:
            Version strings, in any order

        Raises:
            LookupFailed: If the package does not exist or the registry is unreachable
        """
        ...


class SourceControlClient(Protocol):
    """Protocol for source-control hosting clients."""

    async def commit_for(self, repository: str, ref: str) -> str:
        """Return the commit a revision names.

        Args:
            repository: Repository as ``owner/repo``
            ref: Commit, tag or branch as declared by the user

        Raises:
            LookupFailed: If the revision cannot be found or the host is unreachable
        """
        ...
