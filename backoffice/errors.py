"""
Error taxonomy shared by the document store, repositories and services.

Every error carries a stable machine-readable ``kind`` and a human-readable
message; the HTTP layer turns them into JSON responses with ``status_code``.
"""
from typing import Any, Optional


class StoreError(Exception):
    kind = "store_error"
    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message, "details": self.details}


class ValidationError(StoreError):
    kind = "validation_error"
    status_code = 400


class NotFound(StoreError):
    kind = "not_found"
    status_code = 404

    def __init__(self, entity: str, ref_id: Optional[str] = None, details: Optional[Any] = None):
        message = f"{entity} not found" if ref_id is None else f"{entity} not found: {ref_id}"
        super().__init__(message, details)
        self.entity = entity
        self.ref_id = ref_id


class Conflict(StoreError):
    kind = "conflict"
    status_code = 409


class DanglingReference(StoreError):
    kind = "dangling_reference"
    status_code = 409

    def __init__(self, ref_id: str, entity: str = "Document"):
        super().__init__(f"{entity} {ref_id} does not exist", {"entity": entity, "id": ref_id})
        self.ref_id = ref_id
        self.entity = entity


class ReferencedEntity(StoreError):
    kind = "referenced_entity"
    status_code = 409


class InvalidToken(StoreError):
    kind = "invalid_token"
    status_code = 400

    def __init__(self, message: str = "Invalid or already used token"):
        super().__init__(message)


class ExpiredToken(StoreError):
    kind = "expired_token"
    status_code = 400

    def __init__(self, message: str = "Token expired"):
        super().__init__(message)


class StorageCorruption(StoreError):
    kind = "storage_corruption"
    status_code = 500


class StoreBusy(StoreError):
    kind = "store_busy"
    status_code = 503
