"""
Tenant Scoping
==============
build_scope():  turns (role, tenant_id, days) into an immutable QueryScope.
ScopedClient:   the only door aggregators have to the event store.

Every builder handed out by ScopedClient.query() already carries
``.eq("tenant_id", ...)`` unless the caller is a global admin, so an
aggregator cannot forget the tenant filter.  The scope travels as an explicit
argument; nothing about the caller is stored on a shared service object.

Blocking ``execute()`` calls run in a worker thread so that counts issued
together with asyncio.gather() actually overlap.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone, timedelta
from typing import Optional

from analytics import settings
from analytics.errors import QueryError, TenantAccessError

logger = logging.getLogger(__name__)

GLOBAL_ADMIN = "global_admin"


@dataclass(frozen=True)
class QueryScope:
    """Who is asking and over which window."""
    role: Optional[str]
    tenant_id: Optional[str]
    days: int
    start: datetime
    end: datetime

    @property
    def is_global(self) -> bool:
        return self.role == GLOBAL_ADMIN

    @property
    def tenant_filter(self) -> dict:
        if self.is_global:
            return {}
        return {"tenant_id": self.tenant_id}

    @property
    def start_iso(self) -> str:
        return self.start.isoformat()

    @property
    def end_iso(self) -> str:
        return self.end.isoformat()

    def window(self, days: int) -> "QueryScope":
        """Same caller, a different lookback ending at the same instant."""
        return build_scope(self.role, self.tenant_id, days, now=self.end)

    def between(self, start: datetime, end: datetime) -> "QueryScope":
        """Same caller, an explicit [start, end] range (month slices, trends)."""
        days = max(1, round((end - start).total_seconds() / 86400))
        return replace(self, start=start, end=end, days=days)


def build_scope(
    role: Optional[str],
    tenant_id: Optional[str],
    days: int = settings.DEFAULT_LOOKBACK_DAYS,
    now: Optional[datetime] = None,
) -> QueryScope:
    """
    Build the query scope for one caller.

    Raises TenantAccessError for a non-global role without a tenant, and
    ValueError for a non-positive lookback.
    """
    if role != GLOBAL_ADMIN and not tenant_id:
        raise TenantAccessError("No tenant access configured")
    if days is None or days <= 0:
        raise ValueError(f"days must be positive, got {days!r}")

    end = now or datetime.now(timezone.utc)
    if not end.tzinfo:
        end = end.replace(tzinfo=timezone.utc)
    return QueryScope(
        role=role,
        tenant_id=None if role == GLOBAL_ADMIN else tenant_id,
        days=days,
        start=end - timedelta(days=days),
        end=end,
    )


class ScopedClient:
    """Tenant-filtered facade over a supabase-py client."""

    def __init__(
        self,
        supabase,
        scope: QueryScope,
        page_size: int = settings.PAGE_SIZE,
        max_rows: int = settings.MAX_ROWS,
    ):
        self._supabase = supabase
        self.scope = scope
        self.page_size = page_size
        self.max_rows = max_rows

    def with_scope(self, scope: QueryScope) -> "ScopedClient":
        if scope.tenant_id != self.scope.tenant_id or scope.role != self.scope.role:
            raise TenantAccessError("A scoped client cannot be re-pointed at another tenant")
        return ScopedClient(self._supabase, scope, self.page_size, self.max_rows)

    def query(self, table: str, columns: str = "*", count: Optional[str] = None):
        """Start a select on ``table`` with the tenant filter applied."""
        builder = self._supabase.table(table)
        q = builder.select(columns, count=count) if count else builder.select(columns)
        if not self.scope.is_global:
            q = q.eq("tenant_id", self.scope.tenant_id)
        return q

    def in_window(self, q, column: str, scope: Optional[QueryScope] = None):
        """Constrain ``column`` to the scope's [start, end]."""
        s = scope or self.scope
        return q.gte(column, s.start_iso).lte(column, s.end_iso)

    async def _execute(self, q, label: str):
        try:
            return await asyncio.to_thread(q.execute)
        except Exception as e:
            logger.warning("%s: %s", label, e)
            raise QueryError(label, e) from e

    async def fetch(self, q, label: str, limit: Optional[int] = None) -> list[dict]:
        """
        All rows of ``q``, or the first ``limit`` rows when a limit is given.

        Rows are read in ``.range()`` pages until a page comes back short;
        PostgREST silently caps a single response at its max-rows setting.
        """
        if limit is not None:
            result = await self._execute(q.limit(limit), label)
            return result.data or []

        rows: list[dict] = []
        while True:
            start = len(rows)
            # range() appends query params, so every page gets its own builder
            page_q = copy.copy(q).range(start, start + self.page_size - 1)
            page = (await self._execute(page_q, label)).data or []
            rows.extend(page)
            if len(page) < self.page_size:
                return rows
            if len(rows) >= self.max_rows:
                logger.warning("%s: stopped after %d rows, figures may be incomplete", label, len(rows))
                return rows

    async def fetch_one(self, q, label: str) -> Optional[dict]:
        rows = await self.fetch(q, label, limit=1)
        return rows[0] if rows else None

    async def count(self, q, label: str) -> int:
        """Execute a builder created with count="exact" and return its count."""
        result = await self._execute(q.limit(0), label)
        return result.count or 0
