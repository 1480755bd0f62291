"""
Generic repository over one collection of the document store.

Documents are persisted as the JSON form of a pydantic model and handed back
to callers as model instances. Creates, updates and deletes each run inside a
single ``CollectionStore.mutate`` so uniqueness and reference checks see the
same state the write is applied to.
"""
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Generic, List, Optional, Sequence, Type, TypeVar

import pydantic
import structlog
from pydantic import BaseModel

from ..errors import NotFound, StorageCorruption, ValidationError
from ..schemas.files import DeleteOutcome
from ..storage.provider import StorageProvider
from ..store import CollectionStore, Document


logger = structlog.get_logger(__name__)

M = TypeVar("M", bound=BaseModel)


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def error_list(exc: pydantic.ValidationError) -> List[Dict[str, Any]]:
    return [
        {"loc": [str(p) for p in err.get("loc", ())], "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]


def validate_input(model_cls: Type[M], data: Any) -> M:
    """Turn caller input into ``model_cls``; pydantic failures become ValidationError."""
    if isinstance(data, model_cls):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump(exclude_unset=True)
    try:
        return model_cls.model_validate(data)
    except pydantic.ValidationError as e:
        raise ValidationError(f"Invalid {model_cls.__name__}", error_list(e)) from e


class DocumentCollection(Generic[M]):
    """Typed access to one collection: conversion, ordering and locked mutation."""

    collection: str = ""
    entity: str = "Document"
    model: Type[BaseModel]

    def __init__(self, store: CollectionStore, storage: Optional[StorageProvider] = None):
        self.store = store
        self.storage = storage

    # ---------- conversion ----------
    def _to_model(self, doc: Document) -> M:
        try:
            return self.model.model_validate(doc)
        except pydantic.ValidationError as e:
            raise StorageCorruption(
                f"Stored {self.entity} {doc.get('id')} is invalid", error_list(e)
            ) from e

    def _dump(self, data: Dict[str, Any]) -> Document:
        """Validate a full document against the stored model and return its JSON form."""
        try:
            return self.model.model_validate(data).model_dump(mode="json")
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid {self.entity}", error_list(e)) from e

    def sort(self, docs: List[Document]) -> List[Document]:
        return sorted(docs, key=lambda d: d.get("id", ""))

    def _mutate(self, fn, depends_on: Sequence[str] = ()):
        return self.store.mutate(self.collection, fn, depends_on=depends_on)

    def list(self) -> List[M]:
        return [self._to_model(d) for d in self.sort(self.store.load(self.collection))]


class Repository(DocumentCollection[M]):
    """CRUD over a collection of documents keyed by a generated ``id``."""

    create_model: Type[BaseModel]
    update_model: Type[BaseModel]
    # collections read-locked while creating/updating and while deleting
    write_depends_on: Sequence[str] = ()
    delete_depends_on: Sequence[str] = ()
    # attachments live under "<collection>/<id>" in the blob store
    owns_attachments: bool = False

    def owner(self, doc_id: str) -> str:
        return f"{self.collection}/{doc_id}"

    # ---------- hooks ----------
    def _prepare(self, data: Dict[str, Any], current: Optional[Document]) -> Dict[str, Any]:
        """Fill derived fields before validation. ``current`` is None on create."""
        return data

    def _check_unique(self, docs: List[Document], doc: Document) -> None:
        pass

    def _check_refs(self, doc: Document, refs: Dict[str, List[Document]]) -> None:
        pass

    def _check_delete(self, doc: Document, refs: Dict[str, List[Document]]) -> None:
        pass

    # ---------- helpers ----------
    def _index(self, docs: List[Document], doc_id: str) -> int:
        for i, d in enumerate(docs):
            if d.get("id") == doc_id:
                return i
        raise NotFound(self.entity, doc_id)

    # ---------- reads ----------
    def get(self, doc_id: str) -> M:
        docs = self.store.load(self.collection)
        return self._to_model(docs[self._index(docs, doc_id)])

    # ---------- writes ----------
    def create(self, candidate: Any) -> M:
        data = validate_input(self.create_model, candidate).model_dump(mode="json")
        now = utcnow()
        data.update(id=new_id(), created_at=now, updated_at=now)
        doc = self._dump(self._prepare(data, None))

        def fn(docs, refs=None):
            self._check_refs(doc, refs or {})
            self._check_unique(docs, doc)
            return docs + [doc], doc

        stored = self._mutate(fn, self.write_depends_on)
        logger.info("document_created", collection=self.collection, id=stored["id"])
        return self._to_model(stored)

    def update(self, doc_id: str, patch: Any) -> M:
        changes = validate_input(self.update_model, patch).model_dump(mode="json", exclude_unset=True)
        return self._replace(doc_id, changes)

    def _replace(self, doc_id: str, changes: Dict[str, Any]) -> M:
        def fn(docs, refs=None):
            idx = self._index(docs, doc_id)
            current = docs[idx]
            merged = {**current, **changes}
            merged.update(id=current["id"], created_at=current.get("created_at"), updated_at=utcnow())
            doc = self._dump(self._prepare(merged, current))
            self._check_refs(doc, refs or {})
            self._check_unique(docs[:idx] + docs[idx + 1:], doc)
            new_docs = list(docs)
            new_docs[idx] = doc
            return new_docs, doc

        stored = self._mutate(fn, self.write_depends_on)
        logger.info("document_updated", collection=self.collection, id=doc_id)
        return self._to_model(stored)

    def delete(self, doc_id: str) -> DeleteOutcome:
        def fn(docs, refs=None):
            idx = self._index(docs, doc_id)
            self._check_delete(docs[idx], refs or {})
            return docs[:idx] + docs[idx + 1:], docs[idx]

        self._mutate(fn, self.delete_depends_on)
        logger.info("document_deleted", collection=self.collection, id=doc_id)
        outcome = DeleteOutcome(id=doc_id)
        self._cleanup_attachments(doc_id, outcome)
        return outcome

    def _cleanup_attachments(self, doc_id: str, outcome: DeleteOutcome) -> None:
        if not self.owns_attachments or self.storage is None:
            return
        try:
            self.storage.delete_owner(self.owner(doc_id))
        except Exception as e:
            logger.warning("attachment_cleanup_failed", owner=self.owner(doc_id), error=str(e))
            outcome.cleanup_errors.append(str(e))

    def _delete_blob(self, owner: str, stored_name: str) -> Optional[str]:
        """Remove one attachment; an absent blob counts as removed."""
        try:
            self.storage.delete(owner, stored_name)
        except NotFound:
            pass
        except Exception as e:
            logger.warning("attachment_cleanup_failed", owner=owner, stored_name=stored_name, error=str(e))
            return str(e)
        return None
