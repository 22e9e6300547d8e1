"""
AI Confidence Calibration
=========================
Buckets the AI's confidence scores into 0.1-wide bins (0.5 … 0.9) and, per
bin, reports the share of analysed conversations whose lead actually reached
"Hot Lead".  A well calibrated model puts ~0.7 of the 0.7 bin into Hot Lead.
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Any, Iterable, Optional

from analytics.errors import QueryError
from analytics.followup import followup_settings, followup_timing
from analytics.funnel import archetype_performance
from analytics.helpers import HOT_LEAD_STATUS, to_float
from analytics.schemas import AIInsights, ConfidenceBin
from analytics.scope import ScopedClient

logger = logging.getLogger(__name__)

BINS = (0.5, 0.6, 0.7, 0.8, 0.9)


def confidence_bin(value: Any) -> Optional[float]:
    """
    Lower edge of the bin ``value`` falls into, or None below 0.5.

    Bins are [b, b + 0.1); the top bin 0.9 also takes 1.0.
    """
    if value is None:
        return None
    conf = to_float(value)
    if math.isnan(conf) or conf < BINS[0]:
        return None
    if conf >= 1:
        return BINS[-1]
    # 0.7 * 10 is 6.999… in binary floating point
    b = math.floor(conf * 10 + 1e-9) / 10
    return min(b, BINS[-1])


def compute_calibration(records: Iterable[dict], hot_lead_ids: set) -> list[ConfidenceBin]:
    stats = {b: {"hot": 0, "count": 0} for b in BINS}
    for r in records:
        b = confidence_bin(r.get("ai_confidence"))
        if b is None:
            continue
        stats[b]["count"] += 1
        if r.get("lead_id") in hot_lead_ids:
            stats[b]["hot"] += 1

    return [
        ConfidenceBin(
            bin=b,
            label=f"{b:.1f}",
            actualHot=round(s["hot"] / s["count"], 3) if s["count"] else 0,
            count=s["count"],
        )
        for b, s in stats.items()
    ]


async def confidence_calibration(client: ScopedClient) -> list[ConfidenceBin]:
    analytics_q = client.in_window(
        client.query("ai_conversation_analytics", "lead_id,ai_confidence,created_at")
        .not_.is_("ai_confidence", "null"),
        "created_at",
    )
    hot_q = client.query("leads", "id").eq("status", HOT_LEAD_STATUS)

    records, hot_leads = await asyncio.gather(
        client.fetch(analytics_q, "confidence_calibration analytics"),
        client.fetch(hot_q, "confidence_calibration hot leads"),
    )
    return compute_calibration(records, {l["id"] for l in hot_leads})


async def _calibration_or_empty(client: ScopedClient) -> list[ConfidenceBin]:
    try:
        return await confidence_calibration(client)
    except QueryError as e:
        logger.error("ai_performance_insights: calibration unavailable: %s", e)
        return compute_calibration([], set())


async def ai_performance_insights(client: ScopedClient) -> AIInsights:
    """Everything the AI insights panel shows, fetched concurrently."""
    calibration, timing, personas, settings = await asyncio.gather(
        _calibration_or_empty(client),
        followup_timing(client),
        archetype_performance(client),
        followup_settings(client),
    )
    return AIInsights(
        confidenceData=calibration,
        topPerformingPersonas=personas,
        followupTiming=timing,
        followupSettings=settings,
    )
