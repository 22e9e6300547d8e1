"""
Funnel & Conversion Aggregators
===============================
tenant_funnel():          leads added → outbound → inbound → hot, one tenant
campaign_overview():      the same funnel per non-archived campaign
campaign_performance():   campaign table rows (only campaigns that sent)
performance_metrics():    headline counts + response / conversion rates
archetype_performance():  top AI archetypes by hot-lead conversion

Rates are percentages rounded to one decimal and are 0 whenever the
denominator is 0.
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Optional

from analytics.errors import QueryError
from analytics.helpers import (
    HOT_LEAD_STATUS, INBOUND, OUTBOUND, group_by, in_range, parse_iso, pct,
)
from analytics.schemas import (
    ArchetypePerformance, CampaignOverview, FunnelRow, FunnelSummary, PerformanceMetrics,
)
from analytics.scope import ScopedClient

logger = logging.getLogger(__name__)

# TODO: replace with real opens once delivery receipts are stored per message.
ESTIMATED_OPEN_RATE = 0.7

TOP_ARCHETYPES = 3

# TODO: placeholder personas shown when no archetype data exists; confirm with
# product whether these should stay as demo data or be removed.
FALLBACK_ARCHETYPES = [
    ArchetypePerformance(name="Professional Consultant", campaigns=5, conversion=18.5),
    ArchetypePerformance(name="Friendly Advisor", campaigns=3, conversion=16.2),
    ArchetypePerformance(name="Industry Expert", campaigns=4, conversion=14.8),
]


# ---------------------------------------------------------------------------
# Shared fetches
# ---------------------------------------------------------------------------

async def _active_campaigns(client: ScopedClient, columns: str = "id,name,is_active,created_at") -> list[dict]:
    q = (
        client.query("campaigns", columns)
        .eq("archived", False)
        .order("created_at", desc=True)
    )
    return await client.fetch(q, "campaigns")


async def _campaign_leads(client: ScopedClient, campaign_ids: list[str]) -> list[dict]:
    q = (
        client.query("leads", "id,campaign_id,status,marked_hot_at")
        .in_("campaign_id", campaign_ids)
    )
    return await client.fetch(q, "campaign leads")


async def _window_messages(client: ScopedClient) -> list[dict]:
    q = client.in_window(client.query("messages", "lead_id,direction"), "timestamp")
    return await client.fetch(q, "window messages")


def _direction_counts(messages: list[dict], lead_ids: set) -> tuple[int, int]:
    sent = replied = 0
    for m in messages:
        if m.get("lead_id") not in lead_ids:
            continue
        if m.get("direction") == OUTBOUND:
            sent += 1
        elif m.get("direction") == INBOUND:
            replied += 1
    return sent, replied


# ---------------------------------------------------------------------------
# Tenant funnel
# ---------------------------------------------------------------------------

async def tenant_funnel(client: ScopedClient) -> FunnelSummary:
    """
    Funnel counts for the scope window.

    Hot leads are counted among the leads created in the window, so
    hotLeads never exceeds totalLeads.
    """
    leads_q = client.in_window(client.query("leads", "id", count="exact"), "created_at")
    hot_q = client.in_window(
        client.query("leads", "id", count="exact").eq("status", HOT_LEAD_STATUS),
        "created_at",
    )
    sent_q = client.in_window(
        client.query("messages", "id", count="exact").eq("direction", OUTBOUND),
        "timestamp",
    )
    replies_q = client.in_window(
        client.query("messages", "id", count="exact").eq("direction", INBOUND),
        "timestamp",
    )

    total, hot, sent, responses = await asyncio.gather(
        client.count(leads_q, "tenant_funnel leads"),
        client.count(hot_q, "tenant_funnel hot leads"),
        client.count(sent_q, "tenant_funnel outbound"),
        client.count(replies_q, "tenant_funnel inbound"),
    )
    return FunnelSummary(
        totalLeads=total,
        hotLeads=hot,
        messagesSent=sent,
        responses=responses,
        conversionRate=pct(hot, total),
    )


# ---------------------------------------------------------------------------
# Per-campaign views
# ---------------------------------------------------------------------------

async def campaign_overview(client: ScopedClient) -> list[CampaignOverview]:
    """Lifetime lead counts and in-window message counts for every live campaign."""
    campaigns = await _active_campaigns(client)
    if not campaigns:
        return []

    leads, messages = await asyncio.gather(
        _campaign_leads(client, [c["id"] for c in campaigns]),
        _window_messages(client),
    )
    leads_by_campaign = group_by(leads, "campaign_id")

    overview = []
    for c in campaigns:
        campaign_leads = leads_by_campaign.get(c["id"], [])
        total = len(campaign_leads)
        hot = sum(1 for l in campaign_leads if l.get("status") == HOT_LEAD_STATUS)
        sent, replied = _direction_counts(messages, {l["id"] for l in campaign_leads})
        overview.append(CampaignOverview(
            id=str(c["id"]),
            name=c.get("name") or "Untitled campaign",
            is_active=bool(c.get("is_active")),
            created_at=c.get("created_at"),
            totalLeads=total,
            hotLeads=hot,
            messagesSent=sent,
            responses=replied,
            conversionRate=pct(hot, total),
        ))
    return overview


async def campaign_performance(client: ScopedClient) -> list[FunnelRow]:
    """
    Rows for the campaign performance table.

    ``converted`` counts leads marked hot inside the window; ``rate`` is
    converted per outbound message.  Campaigns that sent nothing in the
    window are left out.
    """
    scope = client.scope
    campaigns = await _active_campaigns(client)
    if not campaigns:
        return []

    leads, messages = await asyncio.gather(
        _campaign_leads(client, [c["id"] for c in campaigns]),
        _window_messages(client),
    )
    leads_by_campaign = group_by(leads, "campaign_id")

    rows = []
    for c in campaigns:
        campaign_leads = leads_by_campaign.get(c["id"], [])
        sent, replied = _direction_counts(messages, {l["id"] for l in campaign_leads})
        if sent <= 0:
            continue
        converted = sum(
            1 for l in campaign_leads
            if l.get("status") == HOT_LEAD_STATUS
            and in_range(l.get("marked_hot_at"), scope.start, scope.end)
        )
        rows.append(FunnelRow(
            campaign=c.get("name") or "Untitled campaign",
            campaignId=str(c["id"]),
            sent=sent,
            opened=math.floor(sent * ESTIMATED_OPEN_RATE),
            replied=replied,
            converted=converted,
            rate=pct(converted, sent),
            status="active" if c.get("is_active") else "paused",
            totalLeads=len(campaign_leads),
            created_at=c.get("created_at"),
        ))

    rows.sort(key=lambda r: parse_iso(r.created_at) or scope.start, reverse=True)
    return rows


# ---------------------------------------------------------------------------
# Headline metrics
# ---------------------------------------------------------------------------

async def average_performance(client: ScopedClient) -> float:
    """All-time share of the tenant's leads that reached Hot Lead."""
    total_q = client.query("leads", "id", count="exact")
    hot_q = client.query("leads", "id", count="exact").eq("status", HOT_LEAD_STATUS)
    total, hot = await asyncio.gather(
        client.count(total_q, "average_performance leads"),
        client.count(hot_q, "average_performance hot leads"),
    )
    return pct(hot, total)


async def performance_metrics(client: ScopedClient) -> PerformanceMetrics:
    sent_q = client.in_window(
        client.query("messages", "id", count="exact").eq("direction", OUTBOUND),
        "timestamp",
    )
    replies_q = client.in_window(
        client.query("messages", "id", count="exact").eq("direction", INBOUND),
        "timestamp",
    )
    converted_q = client.in_window(
        client.query("leads", "id", count="exact").eq("status", HOT_LEAD_STATUS),
        "marked_hot_at",
    )
    active_q = (
        client.query("campaigns", "id", count="exact")
        .eq("is_active", True)
        .eq("archived", False)
    )

    sent, replies, conversions, active, average = await asyncio.gather(
        client.count(sent_q, "performance_metrics outbound"),
        client.count(replies_q, "performance_metrics inbound"),
        client.count(converted_q, "performance_metrics conversions"),
        client.count(active_q, "performance_metrics campaigns"),
        average_performance(client),
    )
    return PerformanceMetrics(
        totalMessages=sent,
        totalResponses=replies,
        responseRate=pct(replies, sent),
        totalConversions=conversions,
        conversionRate=pct(conversions, replies),
        activeCampaigns=active,
        averagePerformance=average,
    )


async def archetype_performance(client: ScopedClient) -> list[ArchetypePerformance]:
    """Top AI archetypes ranked by hot-lead conversion of their campaigns."""
    try:
        q = (
            client.query("campaigns", "id,name,ai_archetype_id,ai_archetypes(id,name)")
            .eq("archived", False)
            .not_.is_("ai_archetype_id", "null")
        )
        campaigns = await client.fetch(q, "archetype campaigns")
        if not campaigns:
            return [a.model_copy(update={"campaigns": 0, "conversion": 0}) for a in FALLBACK_ARCHETYPES]
        leads = await _campaign_leads(client, [c["id"] for c in campaigns])
    except QueryError as e:
        logger.error("archetype_performance: using fallback personas: %s", e)
        return list(FALLBACK_ARCHETYPES)

    leads_by_campaign = group_by(leads, "campaign_id")
    stats: dict[str, dict] = {}
    for c in campaigns:
        name = _archetype_name(c.get("ai_archetypes")) or "Unknown Archetype"
        entry = stats.setdefault(name, {"campaigns": 0, "total": 0, "hot": 0})
        entry["campaigns"] += 1
        campaign_leads = leads_by_campaign.get(c["id"], [])
        entry["total"] += len(campaign_leads)
        entry["hot"] += sum(1 for l in campaign_leads if l.get("status") == HOT_LEAD_STATUS)

    personas = sorted(
        (
            ArchetypePerformance(name=name, campaigns=s["campaigns"], conversion=pct(s["hot"], s["total"]))
            for name, s in stats.items()
        ),
        key=lambda p: -p.conversion,
    )
    return personas[:TOP_ARCHETYPES] or list(FALLBACK_ARCHETYPES)


def _archetype_name(embedded) -> Optional[str]:
    # PostgREST returns an embedded many-to-one as a dict, older views as a list
    if isinstance(embedded, list):
        embedded = embedded[0] if embedded else None
    if isinstance(embedded, dict):
        return embedded.get("name")
    return None
