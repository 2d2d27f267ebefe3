from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
import logging

from quoteflow.domain.ids import new_lead_public_id
from quoteflow.domain.models import PersistenceResult, StoredLead, SubmissionRecord
from quoteflow.domain.validation import is_empty_or_whitespace

REQUIRED_FIELDS_MISSING = "Required fields are missing."

logger = logging.getLogger("quoteflow.repository")


@dataclass
class InMemoryLeadRepository:
    """Non-network repository used when no database is configured.

    With ``keep_received`` every handed-over record is also kept in
    ``received`` so callers can inspect what was sent.
    """

    leads: dict[str, StoredLead] = field(default_factory=dict)
    received: list[SubmissionRecord] = field(default_factory=list)
    keep_received: bool = True

    async def submit(self, record: SubmissionRecord) -> PersistenceResult:
        if self.keep_received:
            self.received.append(record)
        required = (record.business_id, record.title, record.description, record.contact_name)
        if any(is_empty_or_whitespace(value) for value in required):
            return PersistenceResult.reject(REQUIRED_FIELDS_MISSING)

        lead = StoredLead(
            lead_id=new_lead_public_id(),
            record=record,
            created_at=datetime.now(tz=UTC),
        )
        self.leads[lead.lead_id] = lead
        logger.info(
            "lead stored in memory",
            extra={"business_id": record.business_id, "lead_id": lead.lead_id},
        )
        return PersistenceResult.accept(lead)
