from typing import Iterable, List, Optional, Tuple

import structlog

from ..config import settings
from ..errors import Conflict, NotFound, StoreError
from ..schemas.employees import Employee, EmployeeCreate, EmployeeDocument, EmployeeUpdate
from ..schemas.files import DeleteOutcome, UploadResult
from ..services import integrity
from .base import Repository, new_id, utcnow


logger = structlog.get_logger(__name__)


class EmployeeRepository(Repository[Employee]):
    collection = "employees"
    entity = "Employee"
    model = Employee
    create_model = EmployeeCreate
    update_model = EmployeeUpdate
    delete_depends_on = ("assignments",)
    owns_attachments = True

    def _check_unique(self, docs, doc):
        for other in docs:
            if other.get("national_id") == doc["national_id"]:
                raise Conflict(
                    f"An employee with national id {doc['national_id']} already exists",
                    {"field": "national_id", "id": other.get("id")},
                )

    def _check_delete(self, doc, refs):
        integrity.ensure_employee_unreferenced(doc["id"], refs)

    def delete(self, doc_id: str, cascade: Optional[bool] = None) -> DeleteOutcome:
        """Delete an employee.

        While assignments reference the employee the delete is rejected with
        ReferencedEntity, unless ``cascade`` is set, in which case those
        assignments are removed first. ``cascade=None`` falls back to the
        EMPLOYEE_DELETE_CASCADE setting.
        """
        if cascade is None:
            cascade = settings.employee_delete_cascade
        self.get(doc_id)
        removed: List[str] = []
        if cascade:
            def drop(assignments):
                gone = integrity.assignments_for_employee(assignments, doc_id)
                ids = {a["id"] for a in gone}
                return [a for a in assignments if a["id"] not in ids], sorted(ids)

            removed = self.store.mutate("assignments", drop)
            if removed:
                logger.info("assignments_cascaded", employee_id=doc_id, count=len(removed))
        outcome = super().delete(doc_id)
        outcome.removed_dependents = removed
        return outcome

    # ---------- documents ----------
    def add_documents(self, doc_id: str, uploads: Iterable[Tuple[str, bytes]]) -> List[UploadResult]:
        """Store each upload and attach it; results are reported per file."""
        self.get(doc_id)
        owner = self.owner(doc_id)
        results: List[UploadResult] = []
        entries: List[dict] = []
        for filename, data in uploads:
            try:
                stored_name = self.storage.put(owner, filename, data)
            except (StoreError, OSError) as e:
                logger.warning("employee_document_upload_failed", employee_id=doc_id, filename=filename, error=str(e))
                results.append(UploadResult(filename=filename, ok=False, error=str(e)))
                continue
            entry = EmployeeDocument(id=new_id(), name=filename, path=stored_name, upload_date=utcnow())
            entries.append(entry.model_dump(mode="json"))
            results.append(UploadResult(filename=filename, ok=True, stored_name=stored_name, document_id=entry.id))
        if not entries:
            return results

        def fn(docs):
            idx = self._index(docs, doc_id)
            doc = dict(docs[idx])
            doc["documents"] = list(doc.get("documents") or []) + entries
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

    def get_document(self, doc_id: str, document_id: str) -> Tuple[EmployeeDocument, bytes]:
        employee = self.get(doc_id)
        for d in employee.documents:
            if d.id == document_id:
                return d, self.storage.get(self.owner(doc_id), d.path)
        raise NotFound("Employee document", document_id)

    def delete_document(self, doc_id: str, document_id: str) -> None:
        """Detach and remove a document; removing one that is already gone is a no-op."""
        def fn(docs):
            idx = self._index(docs, doc_id)
            doc = dict(docs[idx])
            current = doc.get("documents") or []
            kept = [d for d in current if d.get("id") != document_id]
            if len(kept) == len(current):
                return docs, None
            doc["documents"] = kept
            doc["updated_at"] = utcnow().isoformat()
            new_docs = list(docs)
            new_docs[idx] = doc
            return new_docs, next(d for d in current if d.get("id") == document_id)

        removed = self._mutate(fn)
        if removed is not None:
            self._delete_blob(self.owner(doc_id), removed["path"])
