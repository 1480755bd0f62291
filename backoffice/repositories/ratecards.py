from datetime import date
from typing import List, Optional

import structlog

from ..errors import Conflict, StoreError
from ..schemas.ratecards import RateCard, RateCardCreate, RateCardSheet, RateCardUpdate, RateCardUploadResult
from .base import Repository, new_id


logger = structlog.get_logger(__name__)


def _assign_ids(categories):
    """Give new categories and services an id; ids sent by the caller are kept."""
    out = []
    for category in categories or []:
        services = [
            {**service, "id": service.get("id") or new_id()}
            for service in category.get("services") or []
        ]
        out.append({**category, "id": category.get("id") or new_id(), "services": services})
    return out


class RateCardRepository(Repository[RateCard]):
    collection = "ratecards"
    entity = "Rate card"
    model = RateCard
    create_model = RateCardCreate
    update_model = RateCardUpdate
    owns_attachments = True

    def _prepare(self, data, current):
        data["categories"] = _assign_ids(data.get("categories"))
        return data

    def _check_unique(self, docs, doc):
        name = doc["customer_name"].casefold()
        for other in docs:
            if (other.get("customer_name") or "").casefold() == name:
                raise Conflict(
                    f"A rate card for {doc['customer_name']} already exists",
                    {"field": "customer_name", "id": other.get("id")},
                )

    def import_sheet(
        self,
        sheet: RateCardSheet,
        created_by: Optional[str] = None,
        source_filename: Optional[str] = None,
        source_data: Optional[bytes] = None,
    ) -> RateCard:
        """Create a rate card from a parsed sheet, keeping the workbook as its source file."""
        card = self.create(sheet.create_payload(created_by))
        if source_data is None or self.storage is None:
            return card
        stored_name = self.storage.put(self.owner(card.id), source_filename or "source.xlsx", source_data)
        try:
            return self._replace(card.id, {"source_file": stored_name})
        except StoreError:
            self._delete_blob(self.owner(card.id), stored_name)
            raise

    def create_many(self, sheets: List[RateCardSheet], created_by: Optional[str] = None) -> List[RateCardUploadResult]:
        """Create one rate card per sheet; each one succeeds or fails on its own."""
        results = []
        for sheet in sheets:
            if sheet.start_date is None:
                sheet = sheet.model_copy(update={"start_date": date.today()})
            try:
                card = self.create(sheet.create_payload(created_by))
            except StoreError as e:
                logger.info("ratecard_upload_item_failed", customer_name=sheet.customer_name, error=e.kind)
                results.append(RateCardUploadResult(customer_name=sheet.customer_name or "", ok=False, error=e.to_dict()))
                continue
            results.append(RateCardUploadResult(customer_name=card.customer_name, ok=True, id=card.id))
        return results
