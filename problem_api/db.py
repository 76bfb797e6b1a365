from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional

import asyncpg

from problem_api.problems.models import CandidateProblem

logger = logging.getLogger("problemcapture.db")


# -----------------------------
# Queries (read-only; the problems table is owned by the repository service)
# -----------------------------
_SEARCH_SIMILAR_PROBLEMS = """
SELECT *,
  ts_rank(to_tsvector('english', content), plainto_tsquery('english', $1)) AS rank
FROM problems
WHERE tenant_id = $2
  AND to_tsvector('english', content) @@ plainto_tsquery('english', $1)
ORDER BY rank DESC
LIMIT $3;
"""

_CANDIDATE_COLUMNS = ("id", "title", "content", "subject", "category")


def candidate_from_row(row: Mapping[str, Any]) -> CandidateProblem:
    extra = {k: row[k] for k in row.keys() if k not in _CANDIDATE_COLUMNS}
    return CandidateProblem(
        id=str(row["id"]),
        title=str(row["title"] or ""),
        content=str(row["content"] or ""),
        subject=str(row["subject"] or ""),
        category=str(row["category"] or ""),
        extra=extra,
    )


class Db:
    def __init__(self, dsn: str) -> None:
        self._dsn = (dsn or "").strip()
        self._pool: Optional[asyncpg.Pool] = None

    @property
    def pool(self) -> Optional[asyncpg.Pool]:
        return self._pool

    async def start(self) -> None:
        if not self._dsn:
            logger.warning("DATABASE_URL not set; candidate retrieval will return nothing")
            return
        self._pool = await asyncpg.create_pool(dsn=self._dsn, min_size=1, max_size=5)

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def search(self, text: str, tenant_id: str, limit: int = 10) -> List[CandidateProblem]:
        """Full-text candidates for `text` within one tenant, best rank first."""
        if self._pool is None:
            return []
        q = (text or "").strip()
        if not q:
            return []

        async with self._pool.acquire() as conn:
            rows = await conn.fetch(_SEARCH_SIMILAR_PROBLEMS, q, tenant_id, int(limit))
        return [candidate_from_row(r) for r in rows]
