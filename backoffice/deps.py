"""
Shared FastAPI dependencies. The store and blob store are cached singletons so
every request sees the same per-collection locks; tests replace them through
``app.dependency_overrides``.
"""
from functools import lru_cache

from fastapi import Depends

from .config import settings
from .repositories import Repositories
from .storage.provider import StorageProvider
from .store import CollectionStore


@lru_cache(maxsize=1)
def get_store() -> CollectionStore:
    return CollectionStore(settings.data_dir, lock_timeout_s=settings.store_lock_timeout_s)


@lru_cache(maxsize=1)
def get_storage() -> StorageProvider:
    if settings.storage_provider == "blob" and settings.azure_blob_connection and settings.azure_blob_container:
        from .storage.blob_provider import BlobStorageProvider

        return BlobStorageProvider()
    from .storage.local_provider import LocalStorageProvider

    return LocalStorageProvider(settings.files_dir)


def get_repositories(
    store: CollectionStore = Depends(get_store),
    storage: StorageProvider = Depends(get_storage),
) -> Repositories:
    return Repositories(store, storage)


def get_credentials(repos: Repositories = Depends(get_repositories)):
    from .auth.credentials import CredentialService

    return CredentialService(repos.users, repos.reset_tokens)
