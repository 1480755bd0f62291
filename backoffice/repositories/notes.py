import mimetypes
from typing import Any, Iterable, List, Tuple

import structlog

from ..errors import NotFound, StoreError, ValidationError
from ..schemas.files import UploadResult
from ..schemas.notes import Note, NoteCreate, NoteFile, NoteUpdate
from .base import Repository, utcnow, validate_input


logger = structlog.get_logger(__name__)


class NoteRepository(Repository[Note]):
    collection = "notes"
    entity = "Note"
    model = Note
    create_model = NoteCreate
    update_model = NoteUpdate
    owns_attachments = True

    def sort(self, docs):
        by_id = sorted(docs, key=lambda d: d.get("id", ""))
        return sorted(by_id, key=lambda d: d.get("date", ""), reverse=True)

    def update(self, doc_id: str, patch: Any) -> Note:
        """Update a note; ``files`` in the patch lists the attachments to keep.

        Attachments are named by stored name or by original name. Naming an
        attachment the note does not have is a ValidationError; the dropped
        ones are removed from the blob store after the note is saved.
        """
        changes = validate_input(NoteUpdate, patch).model_dump(mode="json", exclude_unset=True)
        keep = changes.pop("files", None)

        def fn(docs):
            idx = self._index(docs, doc_id)
            current = docs[idx]
            merged = {**current, **changes}
            dropped: List[dict] = []
            if keep is not None:
                files = current.get("files") or []
                known = {f.get("path") for f in files} | {f.get("name") for f in files}
                unknown = [name for name in keep if name not in known]
                if unknown:
                    raise ValidationError("Unknown attachments in keep list", {"unknown": unknown})
                wanted = set(keep)
                merged["files"] = [f for f in files if f.get("path") in wanted or f.get("name") in wanted]
                dropped = [f for f in files if f not in merged["files"]]
            merged.update(id=current["id"], created_at=current.get("created_at"), updated_at=utcnow())
            doc = self._dump(merged)
            new_docs = list(docs)
            new_docs[idx] = doc
            return new_docs, (doc, dropped)

        doc, dropped = self._mutate(fn)
        for f in dropped:
            self._delete_blob(self.owner(doc_id), f["path"])
        logger.info("document_updated", collection=self.collection, id=doc_id, files_dropped=len(dropped))
        return self._to_model(doc)

    def add_files(self, doc_id: str, uploads: Iterable[Tuple[str, bytes]]) -> List[UploadResult]:
        self.get(doc_id)
        owner = self.owner(doc_id)
        results: List[UploadResult] = []
        entries: List[dict] = []
        for filename, data in uploads:
            try:
                stored_name = self.storage.put(owner, filename, data)
            except (StoreError, OSError) as e:
                logger.warning("note_file_upload_failed", note_id=doc_id, filename=filename, error=str(e))
                results.append(UploadResult(filename=filename, ok=False, error=str(e)))
                continue
            entries.append(NoteFile(name=filename, path=stored_name).model_dump())
            results.append(UploadResult(filename=filename, ok=True, stored_name=stored_name))
        if not entries:
            return results

        def fn(docs):
            idx = self._index(docs, doc_id)
            doc = dict(docs[idx])
            doc["files"] = list(doc.get("files") or []) + entries
            doc["updated_at"] = utcnow().isoformat()
            new_docs = list(docs)
            new_docs[idx] = doc
            return new_docs

        try:
            self._mutate(fn)
        except StoreError:
            for entry in entries:
                self._delete_blob(owner, entry["path"])
            raise
        return results

    def get_file(self, doc_id: str, stored_name: str) -> Tuple[bytes, str]:
        """Return the attachment bytes and a media type guessed from its extension."""
        note = self.get(doc_id)
        if not any(f.path == stored_name for f in note.files):
            raise NotFound("File", stored_name)
        data = self.storage.get(self.owner(doc_id), stored_name)
        media_type = mimetypes.guess_type(stored_name)[0] or "application/octet-stream"
        return data, media_type

    def delete_file(self, doc_id: str, stored_name: str) -> None:
        def fn(docs):
            idx = self._index(docs, doc_id)
            doc = dict(docs[idx])
            files = doc.get("files") or []
            kept = [f for f in files if f.get("path") != stored_name]
            if len(kept) == len(files):
                return docs
            doc["files"] = kept
            doc["updated_at"] = utcnow().isoformat()
            new_docs = list(docs)
            new_docs[idx] = doc
            return new_docs

        self._mutate(fn)
        self._delete_blob(self.owner(doc_id), stored_name)
