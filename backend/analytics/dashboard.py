"""
Dashboard Assembly
==================
SECTIONS maps a section name to the aggregator that produces it.
build_dashboard() builds one QueryScope for the caller, runs the requested
sections concurrently and returns plain JSON-ready dicts:

    {
      "meta":   {"role": ..., "tenant_id": ..., "days": 30, "start": ..., "end": ...},
      "funnel": {...},
      "trends": {"error": "historical_trends Oct 19 leads failed: ..."},
      ...
    }

A section that raises is reported as ``{"error": message}`` and does not take
the rest of the dashboard down with it.  Nothing is retried.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Iterable, Optional

from pydantic import BaseModel

from analytics import settings
from analytics.confidence import ai_performance_insights, confidence_calibration
from analytics.cost import cost_per_hot_lead
from analytics.followup import followup_timing
from analytics.funnel import (
    archetype_performance, campaign_overview, campaign_performance,
    performance_metrics, tenant_funnel,
)
from analytics.journey import journey_funnel
from analytics.reps import sales_rep_outcomes, sales_rep_performance
from analytics.response_time import (
    hot_lead_handoff_summary, reply_pacing, response_time_summary, rolling_response_times,
    time_to_hot_summary,
)
from analytics.roi import lead_source_roi, total_pipeline_value
from analytics.scope import ScopedClient, build_scope
from analytics.trends import historical_trends

logger = logging.getLogger(__name__)

SECTIONS = {
    "funnel": tenant_funnel,
    "campaign_overview": campaign_overview,
    "campaign_performance": campaign_performance,
    "performance": performance_metrics,
    "archetypes": archetype_performance,
    "journey": journey_funnel,
    "response_time": response_time_summary,
    "response_time_windows": rolling_response_times,
    "time_to_hot": time_to_hot_summary,
    "handoff": hot_lead_handoff_summary,
    "reply_pacing": reply_pacing,
    "cost_per_hot": cost_per_hot_lead,
    "followup_timing": followup_timing,
    "confidence": confidence_calibration,
    "ai_insights": ai_performance_insights,
    "lead_source_roi": lead_source_roi,
    "pipeline_value": total_pipeline_value,
    "reps": sales_rep_performance,
    "rep_outcomes": sales_rep_outcomes,
    "trends": historical_trends,
}


def normalize(value: Any) -> Any:
    """Pydantic models (and containers of them) → plain dicts/lists."""
    if isinstance(value, BaseModel):
        return value.model_dump()
    if isinstance(value, dict):
        return {k: normalize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [normalize(v) for v in value]
    return value


def resolve_sections(sections: Optional[Iterable[str]]) -> list[str]:
    if sections is None:
        return list(SECTIONS)
    names = list(dict.fromkeys(sections))
    unknown = [n for n in names if n not in SECTIONS]
    if unknown:
        raise ValueError(f"Unknown dashboard section(s): {', '.join(unknown)}")
    return names


async def build_dashboard(
    supabase,
    role: Optional[str],
    tenant_id: Optional[str],
    days: int = settings.DEFAULT_LOOKBACK_DAYS,
    sections: Optional[Iterable[str]] = None,
    now: Optional[datetime] = None,
) -> dict:
    names = resolve_sections(sections)
    scope = build_scope(role, tenant_id, days, now=now)
    client = ScopedClient(supabase, scope)

    results = await asyncio.gather(
        *[SECTIONS[name](client) for name in names],
        return_exceptions=True,
    )

    dashboard: dict[str, Any] = {
        "meta": {
            "role": scope.role,
            "tenant_id": scope.tenant_id,
            "days": scope.days,
            "start": scope.start_iso,
            "end": scope.end_iso,
        }
    }
    for name, result in zip(names, results):
        if isinstance(result, Exception):
            logger.error("Dashboard section %s failed: %s", name, result)
            dashboard[name] = {"error": str(result)}
        elif isinstance(result, BaseException):
            raise result
        else:
            dashboard[name] = normalize(result)
    return dashboard


async def run_section(
    supabase,
    role: Optional[str],
    tenant_id: Optional[str],
    name: str,
    days: int = settings.DEFAULT_LOOKBACK_DAYS,
    now: Optional[datetime] = None,
) -> Any:
    """One section's payload (or its error fragment)."""
    dashboard = await build_dashboard(supabase, role, tenant_id, days, [name], now=now)
    return dashboard[name]
