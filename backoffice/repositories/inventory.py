from typing import List

from ..schemas.inventory import (
    Assignment,
    AssignmentCreate,
    AssignmentUpdate,
    InventoryItem,
    InventoryItemCreate,
    InventoryItemUpdate,
)
from ..services import integrity
from .base import Repository


class InventoryRepository(Repository[InventoryItem]):
    collection = "inventory"
    entity = "Inventory item"
    model = InventoryItem
    create_model = InventoryItemCreate
    update_model = InventoryItemUpdate
    delete_depends_on = ("assignments",)

    def _check_delete(self, doc, refs):
        integrity.ensure_item_unreferenced(doc["id"], refs)


class AssignmentRepository(Repository[Assignment]):
    collection = "assignments"
    entity = "Assignment"
    model = Assignment
    create_model = AssignmentCreate
    update_model = AssignmentUpdate
    write_depends_on = ("employees", "inventory")

    def _check_refs(self, doc, refs):
        integrity.check_assignment_refs(doc, refs)

    def list_for_employee(self, employee_id: str) -> List[Assignment]:
        docs = integrity.assignments_for_employee(self.store.load(self.collection), employee_id)
        return [self._to_model(d) for d in self.sort(docs)]
