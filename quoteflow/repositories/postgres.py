from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any

import asyncpg

from quoteflow.domain.models import PersistenceResult, StoredLead, SubmissionRecord
from quoteflow.repositories.sql_loader import load_sql

SQL_INSERT_LEAD = load_sql("insert_lead.sql")

SAVE_FAILED_REASON = "Saving the request failed. Please try again."

logger = logging.getLogger("quoteflow.repository")


@dataclass
class AsyncpgPoolManager:
    dsn: str
    pool: Any | None = None

    async def startup(self) -> None:
        self.pool = await asyncpg.create_pool(
            dsn=self.dsn,
            min_size=1,
            max_size=5,
        )

    async def shutdown(self) -> None:
        if self.pool is None:
            return
        await self.pool.close()
        self.pool = None


@dataclass
class PostgresLeadRepository:
    pool_manager: AsyncpgPoolManager

    def _pool(self) -> Any:
        if self.pool_manager.pool is None:
            raise RuntimeError("postgres pool is not initialized")
        return self.pool_manager.pool

    async def submit(self, record: SubmissionRecord) -> PersistenceResult:
        pool = self._pool()
        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    SQL_INSERT_LEAD,
                    record.business_id,
                    record.title,
                    record.description,
                    record.contact_name,
                    record.contact_email,
                    record.phone,
                    record.address,
                    record.latitude,
                    record.longitude,
                    record.status.value,
                )
        except (asyncpg.PostgresError, OSError) as exc:
            logger.error(
                "lead insert failed: %s",
                exc,
                extra={"business_id": record.business_id, "error_code": "persistence_failed"},
            )
            return PersistenceResult.reject(SAVE_FAILED_REASON)

        if row is None:
            return PersistenceResult.reject(SAVE_FAILED_REASON)
        return PersistenceResult.accept(
            StoredLead(lead_id=str(row["id"]), record=record, created_at=row["created_at"])
        )
