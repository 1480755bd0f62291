from typing import List, Optional

from ..schemas.proposals import Proposal, ProposalCreate, ProposalStatus, ProposalUpdate
from ..services.pricing import price_proposal
from .base import Repository


class ProposalRepository(Repository[Proposal]):
    collection = "proposals"
    entity = "Proposal"
    model = Proposal
    create_model = ProposalCreate
    update_model = ProposalUpdate

    def _prepare(self, data, current):
        if current is None:
            data["status"] = ProposalStatus.draft.value
        return price_proposal(data)

    def sort(self, docs):
        # newest first; ties broken by id for a stable order
        by_id = sorted(docs, key=lambda d: d.get("id", ""))
        return sorted(by_id, key=lambda d: d.get("date", ""), reverse=True)

    def list(self, status: Optional[ProposalStatus] = None) -> List[Proposal]:
        items = super().list()
        if status is not None:
            items = [p for p in items if p.status == ProposalStatus(status)]
        return items
