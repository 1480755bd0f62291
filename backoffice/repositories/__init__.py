from typing import Optional

from ..storage.provider import StorageProvider
from ..store import CollectionStore
from .employees import EmployeeRepository
from .inventory import AssignmentRepository, InventoryRepository
from .notes import NoteRepository
from .proposals import ProposalRepository
from .ratecards import RateCardRepository
from .users import ResetTokenRepository, UserRepository


class Repositories:
    """One repository per entity, all sharing a store and a blob store."""

    def __init__(self, store: CollectionStore, storage: Optional[StorageProvider] = None):
        self.store = store
        self.storage = storage
        self.employees = EmployeeRepository(store, storage)
        self.inventory = InventoryRepository(store, storage)
        self.assignments = AssignmentRepository(store, storage)
        self.proposals = ProposalRepository(store, storage)
        self.ratecards = RateCardRepository(store, storage)
        self.notes = NoteRepository(store, storage)
        self.users = UserRepository(store, storage)
        self.reset_tokens = ResetTokenRepository(store, storage)


__all__ = [
    "Repositories",
    "EmployeeRepository",
    "InventoryRepository",
    "AssignmentRepository",
    "ProposalRepository",
    "RateCardRepository",
    "NoteRepository",
    "UserRepository",
    "ResetTokenRepository",
]
