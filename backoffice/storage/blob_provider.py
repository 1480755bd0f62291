from typing import BinaryIO, List

from azure.core.exceptions import ResourceExistsError, ResourceNotFoundError
from azure.storage.blob import BlobServiceClient

from ..config import settings
from ..errors import NotFound
from .provider import StorageProvider, check_owner, check_stored_name


class BlobStorageProvider(StorageProvider):
    def __init__(self) -> None:
        if not settings.azure_blob_connection or not settings.azure_blob_container:
            raise RuntimeError("AZURE_BLOB_CONNECTION and AZURE_BLOB_CONTAINER must be set")
        self._service = BlobServiceClient.from_connection_string(settings.azure_blob_connection)
        self._container = settings.azure_blob_container

    def _key(self, owner: str, stored_name: str) -> str:
        return f"{check_owner(owner)}/{check_stored_name(stored_name)}"

    def put(self, owner: str, filename: str, data: bytes | BinaryIO) -> str:
        payload = data.read() if hasattr(data, "read") else data
        for stored_name in self._candidate_names(owner, filename):
            client = self._service.get_blob_client(self._container, self._key(owner, stored_name))
            try:
                client.upload_blob(payload, overwrite=False)
            except ResourceExistsError:
                continue
            return stored_name

    def get(self, owner: str, stored_name: str) -> bytes:
        client = self._service.get_blob_client(self._container, self._key(owner, stored_name))
        try:
            return client.download_blob().readall()
        except ResourceNotFoundError:
            raise NotFound("File", stored_name)

    def exists(self, owner: str, stored_name: str) -> bool:
        client = self._service.get_blob_client(self._container, self._key(owner, stored_name))
        return client.exists()

    def delete(self, owner: str, stored_name: str) -> None:
        client = self._service.get_blob_client(self._container, self._key(owner, stored_name))
        try:
            client.delete_blob()
        except ResourceNotFoundError:
            raise NotFound("File", stored_name)

    def delete_owner(self, owner: str) -> None:
        container = self._service.get_container_client(self._container)
        for blob in container.list_blobs(name_starts_with=f"{check_owner(owner)}/"):
            try:
                container.delete_blob(blob.name)
            except ResourceNotFoundError:
                continue

    def list(self, owner: str) -> List[str]:
        prefix = f"{check_owner(owner)}/"
        container = self._service.get_container_client(self._container)
        return sorted(b.name[len(prefix):] for b in container.list_blobs(name_starts_with=prefix))
