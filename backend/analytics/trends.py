"""Historical trend line: the scope window cut into equal slices."""

from __future__ import annotations

import asyncio
import logging

from analytics.cost import DEFAULT_COST_MODEL, CostModel, cost_per_hot
from analytics.helpers import HOT_LEAD_STATUS, INBOUND, OUTBOUND, pct
from analytics.schemas import TrendPoint
from analytics.scope import QueryScope, ScopedClient

logger = logging.getLogger(__name__)

TREND_POINTS = 7


def trend_slices(scope: QueryScope, points: int = TREND_POINTS) -> list[QueryScope]:
    """``points`` consecutive sub-scopes covering the window, oldest first."""
    if points <= 0:
        raise ValueError(f"points must be positive, got {points!r}")
    step = (scope.end - scope.start) / points
    return [
        scope.between(scope.start + step * i, scope.start + step * (i + 1))
        for i in range(points)
    ]


def period_label(s: QueryScope) -> str:
    return f"{s.end:%b} {s.end.day}"


async def _trend_point(client: ScopedClient, s: QueryScope, cost_model: CostModel) -> TrendPoint:
    label = f"historical_trends {period_label(s)}"
    leads_q = client.in_window(client.query("leads", "id", count="exact"), "created_at", s)
    hot_q = client.in_window(
        client.query("leads", "id", count="exact").eq("status", HOT_LEAD_STATUS),
        "marked_hot_at", s,
    )
    sent_q = client.in_window(
        client.query("messages", "id", count="exact").eq("direction", OUTBOUND),
        "timestamp", s,
    )
    replies_q = client.in_window(
        client.query("messages", "id", count="exact").eq("direction", INBOUND),
        "timestamp", s,
    )
    leads, hot, sent, replies = await asyncio.gather(
        client.count(leads_q, label + " leads"),
        client.count(hot_q, label + " hot leads"),
        client.count(sent_q, label + " outbound"),
        client.count(replies_q, label + " inbound"),
    )
    return TrendPoint(
        period=period_label(s),
        hotLeadRate=pct(hot, leads),
        replyRate=pct(replies, sent),
        costPerHot=cost_per_hot(cost_model, sent, hot),
    )


async def historical_trends(
    client: ScopedClient,
    points: int = TREND_POINTS,
    cost_model: CostModel = DEFAULT_COST_MODEL,
) -> list[TrendPoint]:
    """
    Hot-lead rate, reply rate and estimated cost per hot lead per slice.

    Failures propagate; the dashboard reports them as an error fragment
    instead of inventing numbers.
    """
    return list(await asyncio.gather(
        *[_trend_point(client, s, cost_model) for s in trend_slices(client.scope, points)]
    ))
