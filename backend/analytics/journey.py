"""
Lead journey funnel from the daily sales_metrics rollup.

Stages are summed over the tenant-wide daily rows in the scope window:

    Uploaded  (total_leads_assigned)
    Contacted (leads_contacted)
    Hot       (hot_leads)
    Converted (conversion_count)

Per-rep rows are left out so nothing is counted twice.
"""

from __future__ import annotations

import logging
import math

from analytics.helpers import pct, to_float
from analytics.schemas import DropoffReason, JourneyFunnel, JourneyStage, StageTime
from analytics.scope import ScopedClient

logger = logging.getLogger(__name__)

STAGES = (
    ("Uploaded", "total_leads_assigned"),
    ("Contacted", "leads_contacted"),
    ("Hot", "hot_leads"),
    ("Converted", "conversion_count"),
)

DEFAULT_DAYS_TO_CONVERSION = 10.0

# TODO: split by real status-change timestamps once lead history is stored;
# until then the conversion time is divided by fixed shares.
STAGE_TIME_SHARES = (("New", 0.2), ("Contacted", 0.3), ("Hot", 0.5))

# TODO: replace with reasons recorded on the lead when it is closed out.
UNCLASSIFIED_DROPOFF_SHARES = (("No Response", 0.6), ("Lost Interest", 0.4))

_COLUMNS = ",".join(
    ["metric_date"]
    + [column for _, column in STAGES]
    + ["disqualified_by_ai", "disqualified_by_human", "avg_days_to_conversion"]
)


def _total(rows: list[dict], column: str) -> int:
    return int(sum(to_float(r.get(column)) for r in rows))


def journey_stages(totals: dict[str, int]) -> list[JourneyStage]:
    """Adjacent stage pairs with conversion / drop-off percentages."""
    stages = []
    for (from_stage, from_col), (to_stage, to_col) in zip(STAGES, STAGES[1:]):
        entered, exited = totals[from_col], totals[to_col]
        stages.append(JourneyStage(
            fromStage=from_stage,
            toStage=to_stage,
            countEntered=entered,
            countExited=exited,
            conversionRate=pct(exited, entered),
            dropOffRate=pct(entered - exited, entered),
        ))
    return stages


def stage_times(rows: list[dict]) -> list[StageTime]:
    days = [d for d in (to_float(r.get("avg_days_to_conversion")) for r in rows) if d and not math.isnan(d)]
    avg = sum(days) / len(days) if days else DEFAULT_DAYS_TO_CONVERSION
    return [StageTime(stage=stage, avgDays=round(avg * share, 1)) for stage, share in STAGE_TIME_SHARES]


def dropoff_reasons(total_dropoffs: int, by_ai: int, by_human: int) -> list[DropoffReason]:
    """Known disqualifications plus the unexplained rest; zero counts are dropped."""
    rest = max(0, total_dropoffs - by_ai - by_human)
    reasons = [
        DropoffReason(reason="AI Auto-Disqualified", count=by_ai),
        DropoffReason(reason="Human Disqualified", count=by_human),
    ]
    reasons += [
        DropoffReason(reason=reason, count=math.floor(rest * share))
        for reason, share in UNCLASSIFIED_DROPOFF_SHARES
    ]
    return [r for r in reasons if r.count > 0]


async def journey_funnel(client: ScopedClient) -> JourneyFunnel:
    scope = client.scope
    q = (
        client.query("sales_metrics", _COLUMNS)
        .eq("period_type", "daily")
        .is_("user_profile_id", "null")
        .gte("metric_date", scope.start.date().isoformat())
        .lte("metric_date", scope.end.date().isoformat())
        .order("metric_date")
    )
    rows = await client.fetch(q, "journey_funnel sales_metrics")

    totals = {column: _total(rows, column) for _, column in STAGES}
    entered = totals["total_leads_assigned"]
    converted = totals["conversion_count"]
    total_dropoffs = max(0, entered - converted)

    return JourneyFunnel(
        funnelData=journey_stages(totals),
        timeInStage=stage_times(rows),
        dropoffReasons=dropoff_reasons(
            total_dropoffs,
            _total(rows, "disqualified_by_ai"),
            _total(rows, "disqualified_by_human"),
        ),
        totalDropoffs=total_dropoffs,
        totalEntered=entered,
        totalConverted=converted,
    )
