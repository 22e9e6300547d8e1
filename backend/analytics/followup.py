"""
Follow-up Timing Effectiveness
==============================
Do follow-ups sent around day 3 / 7 / 14 after first contact get answered?

For each lead, outbound messages are ordered in time and every message after
the first is a follow-up.  A follow-up lands in a bucket when its whole-day
offset from the first outbound is within ±1 of the bucket day (checked in
bucket order).  It counts as a hit when the same lead sends any inbound
message within three days after it.

A reply is credited to the follow-up that preceded it, whatever caused it.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Iterable, Sequence

from analytics.errors import QueryError
from analytics.helpers import DAY_SECONDS, INBOUND, OUTBOUND, group_by, parse_iso, pct
from analytics.schemas import FollowupSettings, FollowupTiming
from analytics.scope import ScopedClient

logger = logging.getLogger(__name__)

DEFAULT_FOLLOWUP_DAYS = (3, 7, 14)
BUCKET_TOLERANCE_DAYS = 1
RESPONSE_WINDOW = timedelta(days=3)

# Static estimates shown when messages cannot be read
FALLBACK_RESPONSE_RATES = {3: 32, 7: 28, 14: 15}


def bucket_for(days_diff: int, days: Sequence[int] = DEFAULT_FOLLOWUP_DAYS):
    """Bucket day for a follow-up ``days_diff`` days after first contact, or None."""
    for day in days:
        if abs(days_diff - day) <= BUCKET_TOLERANCE_DAYS:
            return day
    return None


def compute_followup_timing(
    messages: Iterable[dict],
    days: Sequence[int] = DEFAULT_FOLLOWUP_DAYS,
) -> list[FollowupTiming]:
    """Pure bucketing core: messages with lead_id/direction/timestamp → rates."""
    stats = {day: {"sent": 0, "hits": 0} for day in days}

    for thread in group_by(messages, "lead_id").values():
        outbound = sorted(
            t for t in (parse_iso(m.get("timestamp")) for m in thread if m.get("direction") == OUTBOUND) if t
        )
        if len(outbound) < 2:
            continue
        inbound = [
            t for t in (parse_iso(m.get("timestamp")) for m in thread if m.get("direction") == INBOUND) if t
        ]

        first = outbound[0]
        for sent_at in outbound[1:]:
            days_diff = int((sent_at - first).total_seconds() // DAY_SECONDS)
            day = bucket_for(days_diff, days)
            if day is None:
                continue
            stats[day]["sent"] += 1
            if any(timedelta(0) <= t - sent_at <= RESPONSE_WINDOW for t in inbound):
                stats[day]["hits"] += 1

    return [
        FollowupTiming(day=day, responseRate=pct(stats[day]["hits"], stats[day]["sent"]))
        for day in days
    ]


async def followup_settings(client: ScopedClient) -> FollowupSettings:
    """Tenant follow-up delays from platform_settings; defaults when unset."""
    if client.scope.is_global:
        # no single tenant to read settings for
        return FollowupSettings()
    q = client.query("platform_settings", "followup_delay_1,followup_delay_2,followup_delay_3")
    try:
        row = await client.fetch_one(q, "platform_settings")
    except QueryError:
        row = None
    row = row or {}
    defaults = FollowupSettings()
    return FollowupSettings(
        followup_delay_1=row.get("followup_delay_1") or defaults.followup_delay_1,
        followup_delay_2=row.get("followup_delay_2") or defaults.followup_delay_2,
        followup_delay_3=row.get("followup_delay_3") or defaults.followup_delay_3,
    )


async def followup_timing(client: ScopedClient) -> list[FollowupTiming]:
    settings = await followup_settings(client)
    days = (settings.followup_delay_1, settings.followup_delay_2, settings.followup_delay_3)

    q = client.in_window(
        client.query("messages", "lead_id,direction,timestamp"), "timestamp"
    ).order("timestamp")
    try:
        messages = await client.fetch(q, "followup_timing messages")
    except QueryError as e:
        logger.error("followup_timing: using fallback rates: %s", e)
        return [
            FollowupTiming(day=day, responseRate=FALLBACK_RESPONSE_RATES[day])
            for day in DEFAULT_FOLLOWUP_DAYS
        ]

    return compute_followup_timing(messages, days)
