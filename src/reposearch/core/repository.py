"""Repository management logic.

Provides high-level operations for managing repository records including:
- Getting or creating the record for a repository name
- Listing and retrieving repositories
- Deleting repositories with cascade cleanup across every index store
"""

from typing import Optional

from reposearch.entities import Repository
from reposearch.observability.logging import get_logger
from reposearch.storage import IndexStores

logger = get_logger(__name__)


class RepositoryManager:
    """Manager for repository records.

    Coordinates the metadata store with the lexical, vector and symbol stores
    so deletions never leave orphaned index data behind.
    """

    def __init__(self, stores: IndexStores):
        self.stores = stores

    async def get_or_create(self, name: str) -> Repository:
        """Return the record for ``name``, creating it on first use.

        Raises:
            RepositoryError: If the name is invalid
        """
        existing = await self.stores.metadata.get_repository_by_name(name)
        if existing:
            return existing

        try:
            repository = Repository(name=name)
        except ValueError as e:
            raise RepositoryError(f"Invalid repository name '{name}': {e}") from e

        await self.stores.metadata.add_repository(repository)
        logger.info("repository_created", repository_id=str(repository.id), name=name)
        return repository

    async def get_repository(self, name: str) -> Optional[Repository]:
        return await self.stores.metadata.get_repository_by_name(name)

    async def require_indexed(self, name: str) -> Repository:
        """Return the record for an indexed repository.

        Raises:
            RepositoryNotIndexedError: If the repository is unknown or has no
                committed snapshot
        """
        repository = await self.stores.metadata.get_repository_by_name(name)
        if repository is None or not repository.is_indexed:
            raise RepositoryNotIndexedError(f"Repository '{name}' has not been indexed")
        return repository

    async def list_repositories(self) -> list[Repository]:
        return await self.stores.metadata.list_repositories()

    async def delete_repository(self, name: str) -> bool:
        """Delete a repository and all associated index data.

        Returns:
            True if deleted, False if not found

        Raises:
            RepositoryError: If deletion fails
        """
        logger.info("repository_delete_started", name=name)

        repository = await self.stores.metadata.get_repository_by_name(name)
        if not repository:
            logger.warning("repository_not_found", name=name)
            return False

        try:
            for store in (self.stores.lexical, self.stores.vectors, self.stores.symbols):
                await store.purge_generations(repository.id)
            deleted = await self.stores.metadata.delete_repository(repository.id)
        except Exception as e:
            logger.error("repository_delete_error", name=name, error=str(e))
            raise RepositoryError(f"Failed to delete repository: {e}") from e

        logger.info("repository_deleted", repository_id=str(repository.id), name=name)
        return deleted


class RepositoryError(Exception):
    """Exception raised during repository operations."""

    pass


class RepositoryNotFoundError(RepositoryError):
    """Exception raised when a repository is not found."""

    pass


class RepositoryNotIndexedError(RepositoryNotFoundError):
    """Exception raised when a repository has no committed snapshot."""

    pass
