"""
Cross-collection reference checks.

Assignments point at employees and inventory items by id. These helpers run
inside ``CollectionStore.mutate`` callbacks, against snapshots read while the
referenced collections are read-locked, so a check and the write it guards
see the same state.
"""
from typing import Dict, Iterable, List

from ..errors import DanglingReference, ReferencedEntity
from ..store import Document


def _ids(docs: Iterable[Document]) -> set:
    return {d.get("id") for d in docs}


def check_assignment_refs(assignment: Document, refs: Dict[str, List[Document]]) -> None:
    """Raise DanglingReference for the first id the assignment cannot resolve."""
    employee_id = assignment.get("employee_id")
    if employee_id not in _ids(refs.get("employees", [])):
        raise DanglingReference(employee_id, "Employee")
    inventory_ids = _ids(refs.get("inventory", []))
    for line in assignment.get("items") or []:
        if line.get("inventory_id") not in inventory_ids:
            raise DanglingReference(line.get("inventory_id"), "Inventory item")


def assignments_for_employee(assignments: Iterable[Document], employee_id: str) -> List[Document]:
    return [a for a in assignments if a.get("employee_id") == employee_id]


def assignments_for_item(assignments: Iterable[Document], inventory_id: str) -> List[Document]:
    return [
        a for a in assignments
        if any(line.get("inventory_id") == inventory_id for line in a.get("items") or [])
    ]


def ensure_employee_unreferenced(employee_id: str, refs: Dict[str, List[Document]]) -> None:
    using = assignments_for_employee(refs.get("assignments", []), employee_id)
    if using:
        raise ReferencedEntity(
            f"Employee {employee_id} is referenced by {len(using)} assignment(s)",
            {"assignments": [a["id"] for a in using]},
        )


def ensure_item_unreferenced(inventory_id: str, refs: Dict[str, List[Document]]) -> None:
    using = assignments_for_item(refs.get("assignments", []), inventory_id)
    if using:
        raise ReferencedEntity(
            f"Inventory item {inventory_id} is referenced by {len(using)} assignment(s)",
            {"assignments": [a["id"] for a in using]},
        )
