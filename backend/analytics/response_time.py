"""
Response-Time Aggregators
=========================
response_time_summary():     mean / fastest / slowest of a sales_metrics
                             interval column over the scope window
time_to_hot_summary():       the same summary over avg_time_to_hot
response_time_windows():     the same summary for rolling 7/30/90-day windows
hot_lead_handoff_summary():  marked hot → first call, plus call outcomes
reply_pacing():              inbound message → next outbound reply

Interval columns arrive as Postgres interval text ("01:30:00",
"1 day 02:00:00").  NULL and unreadable intervals are left out of the sample
rather than counted as zero; an empty sample yields the "—" sentinel for
every figure.
"""

from __future__ import annotations

import asyncio
import logging
import re
from datetime import timedelta
from typing import Any, Iterable, Optional

from analytics.helpers import HOT_LEAD_STATUS, INBOUND, OUTBOUND, group_by, parse_iso
from analytics.schemas import HandoffSummary, ReplyPacing, ResponseTimeSummary
from analytics.scope import ScopedClient, build_scope

logger = logging.getLogger(__name__)

ROLLING_WINDOWS = (7, 30, 90)
HANDOFF_HOURS = 48
CALL_OUTCOME_DAYS = 7
CALL_OUTCOMES = ("connected", "voicemail", "no_answer", "not_fit", "qualified", "interested")
REPLY_GAP_LIMIT = timedelta(hours=6)

_DAYS_PREFIX = re.compile(r"^\s*(-?\d+)\s+days?\s*(.*)$")


def interval_minutes(value: Any) -> Optional[int]:
    """
    "H:MM:SS" → whole minutes (seconds dropped), or None when unreadable.

    A leading "N day(s)" adds N * 1440.
    """
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None

    day_minutes = 0
    match = _DAYS_PREFIX.match(text)
    if match:
        day_minutes = int(match.group(1)) * 1440
        text = match.group(2)
        if not text:
            return day_minutes

    parts = text.split(":")
    if len(parts) < 2:
        return None
    try:
        hours = int(parts[0])
        minutes = int(parts[1])
    except ValueError:
        return None
    return day_minutes + hours * 60 + minutes


def parse_interval_to_minutes(value: Any) -> int:
    """Like interval_minutes(), but None, "" and malformed text give 0."""
    minutes = interval_minutes(value)
    return 0 if minutes is None else minutes


def format_minutes(minutes: float) -> str:
    total = round(minutes)
    if total < 60:
        return f"{total}m"
    hours, rest = divmod(total, 60)
    return f"{hours}h {rest}m"


def summarize_minutes(samples: Iterable[float]) -> ResponseTimeSummary:
    """avg/fastest/slowest as display strings; sentinel when there is no sample."""
    values = list(samples)
    if not values:
        return ResponseTimeSummary()
    return ResponseTimeSummary(
        avg_response=format_minutes(sum(values) / len(values)),
        fastest_response=format_minutes(min(values)),
        slowest_response=format_minutes(max(values)),
        sample_size=len(values),
    )


def _interval_samples(rows: list[dict], field: str) -> list[int]:
    samples = []
    skipped = 0
    for r in rows:
        raw = r.get(field)
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            continue
        minutes = interval_minutes(raw)
        if minutes is None:
            skipped += 1
            continue
        samples.append(minutes)
    if skipped:
        logger.warning("%s: skipped %d unreadable interval(s)", field, skipped)
    return samples


async def response_time_summary(
    client: ScopedClient,
    field: str = "avg_response_time",
    period_type: str = "daily",
    user_profile_id: Optional[str] = None,
) -> ResponseTimeSummary:
    """
    Summarize an interval column of the sales_metrics rollup.

    sales_metrics holds one tenant-wide row per day plus one row per rep;
    without ``user_profile_id`` only the tenant-wide rows are read.
    """
    scope = client.scope
    q = (
        client.query("sales_metrics", f"metric_date,{field}")
        .eq("period_type", period_type)
        .gte("metric_date", scope.start.date().isoformat())
        .lte("metric_date", scope.end.date().isoformat())
    )
    if user_profile_id is None:
        q = q.is_("user_profile_id", "null")
    else:
        q = q.eq("user_profile_id", user_profile_id)
    rows = await client.fetch(q, f"response_time_summary {field}")
    return summarize_minutes(_interval_samples(rows, field))


async def time_to_hot_summary(client: ScopedClient) -> ResponseTimeSummary:
    """First contact → marked hot, from the avg_time_to_hot rollup column."""
    return await response_time_summary(client, field="avg_time_to_hot")


async def response_time_windows(
    supabase,
    role: Optional[str],
    tenant_id: Optional[str],
    field: str = "avg_response_time",
) -> dict[str, ResponseTimeSummary]:
    """Rolling 7/30/90-day summaries, keyed "7d", "30d", "90d"."""
    base = build_scope(role, tenant_id, max(ROLLING_WINDOWS))
    client = ScopedClient(supabase, base)
    return await rolling_response_times(client, field)


async def rolling_response_times(
    client: ScopedClient,
    field: str = "avg_response_time",
) -> dict[str, ResponseTimeSummary]:
    summaries = await asyncio.gather(*[
        response_time_summary(client.with_scope(client.scope.window(days)), field)
        for days in ROLLING_WINDOWS
    ])
    return {f"{days}d": s for days, s in zip(ROLLING_WINDOWS, summaries)}


async def hot_lead_handoff_summary(client: ScopedClient, hours: int = HANDOFF_HOURS) -> HandoffSummary:
    """
    How fast reps call leads after the AI marks them hot.

    Response time is taken over leads marked hot in the last ``hours``;
    outcome counts over calls in the last seven days.
    """
    now = client.scope.end
    recent_q = (
        client.query("leads", "id,marked_hot_at,first_call_at")
        .eq("status", HOT_LEAD_STATUS)
        .gte("marked_hot_at", (now - timedelta(hours=hours)).isoformat())
    )
    outcomes_q = (
        client.query("leads", "id,call_outcome,first_call_at")
        .not_.is_("call_outcome", "null")
        .gte("first_call_at", (now - timedelta(days=CALL_OUTCOME_DAYS)).isoformat())
    )
    recent, called = await asyncio.gather(
        client.fetch(recent_q, "handoff hot leads"),
        client.fetch(outcomes_q, "handoff call outcomes"),
    )

    delays = []
    for lead in recent:
        marked = parse_iso(lead.get("marked_hot_at"))
        first_call = parse_iso(lead.get("first_call_at"))
        if marked and first_call:
            delays.append((first_call - marked).total_seconds() / 60)

    outcomes = {name: 0 for name in CALL_OUTCOMES}
    for lead in called:
        outcome = lead.get("call_outcome")
        if outcome in outcomes:
            outcomes[outcome] += 1

    summary = summarize_minutes(delays)
    return HandoffSummary(**summary.model_dump(), **outcomes)


async def reply_pacing(client: ScopedClient) -> ReplyPacing:
    """Average minutes from a lead's inbound message to the next outbound reply."""
    q = client.in_window(
        client.query("messages", "lead_id,direction,timestamp"), "timestamp"
    ).order("timestamp")
    messages = await client.fetch(q, "reply_pacing messages")

    gaps = []
    for thread in group_by(messages, "lead_id").values():
        ordered = sorted(
            (m for m in thread if parse_iso(m.get("timestamp"))),
            key=lambda m: parse_iso(m["timestamp"]),
        )
        for prev, curr in zip(ordered, ordered[1:]):
            if prev.get("direction") == INBOUND and curr.get("direction") == OUTBOUND:
                gap = parse_iso(curr["timestamp"]) - parse_iso(prev["timestamp"])
                if timedelta(0) < gap < REPLY_GAP_LIMIT:
                    gaps.append(gap.total_seconds())

    if not gaps:
        return ReplyPacing()
    return ReplyPacing(
        averageMinutes=round(sum(gaps) / len(gaps) / 60),
        responsePairs=len(gaps),
    )
