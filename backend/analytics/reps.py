"""
Sales Rep Performance
=====================
For a lead-qualification platform a rep's "win" is a lead turning Hot.

sales_rep_performance():  per sales_team member, from leads assigned to them
sales_rep_outcomes():     per rep, from sales_outcomes in the window (used when
                          a tenant has outcomes but no sales_team rows)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from analytics.helpers import HOT_LEAD_STATUS, group_by, pct, to_float
from analytics.schemas import RepOutcome, RepPerformance
from analytics.scope import ScopedClient

logger = logging.getLogger(__name__)

CLOSED_WON = "Closed Won"
DEFAULT_REP_NAME = "Sales Team Member"


def display_name(email: Optional[str], fallback: Optional[str] = None) -> str:
    """Local part of the rep's email, else ``fallback``."""
    if email and "@" in email:
        return email.split("@")[0]
    return email or fallback or DEFAULT_REP_NAME


async def _emails(client: ScopedClient, profile_ids: list) -> dict:
    if not profile_ids:
        return {}
    q = client.query("users_profile", "id,email").in_("id", profile_ids)
    profiles = await client.fetch(q, "sales reps profiles")
    return {p["id"]: p.get("email") for p in profiles}


async def sales_rep_performance(client: ScopedClient) -> list[RepPerformance]:
    team_q = client.query("sales_team", "id,user_profile_id,department")
    team = await client.fetch(team_q, "sales_rep_performance team")
    if not team:
        return []

    emails, leads = await asyncio.gather(
        _emails(client, [m["user_profile_id"] for m in team if m.get("user_profile_id")]),
        client.fetch(
            client.query("leads", "id,status,estimated_pipeline_value,assigned_to_sales_team_id")
            .in_("assigned_to_sales_team_id", [m["id"] for m in team]),
            "sales_rep_performance leads",
        ),
    )
    leads_by_rep = group_by(leads, "assigned_to_sales_team_id")

    reps = []
    for member in team:
        assigned = leads_by_rep.get(member["id"], [])
        hot = [l for l in assigned if l.get("status") == HOT_LEAD_STATUS]
        reps.append(RepPerformance(
            rep=display_name(emails.get(member.get("user_profile_id")), member.get("department")),
            totalLeadsAssigned=len(assigned),
            hotLeadsGenerated=len(hot),
            pipelineValue=round(sum(to_float(l.get("estimated_pipeline_value")) for l in hot), 2),
            conversionRate=pct(len(hot), len(assigned)),
        ))
    return reps


async def sales_rep_outcomes(client: ScopedClient) -> list[RepOutcome]:
    q = client.in_window(
        client.query("sales_outcomes", "sales_rep_id,deal_amount,deal_stage,lead_id,created_at"),
        "created_at",
    )
    sales = [s for s in await client.fetch(q, "sales_rep_outcomes") if s.get("sales_rep_id")]
    if not sales:
        return []

    by_rep = group_by(sales, "sales_rep_id")
    emails = await _emails(client, list(by_rep))

    outcomes = []
    for rep_id, rows in by_rep.items():
        won = [s for s in rows if s.get("deal_stage") == CLOSED_WON]
        outcomes.append(RepOutcome(
            rep=display_name(emails.get(rep_id), f"Sales Rep {str(rep_id)[:8]}"),
            hotLeadsReceived=len(rows),
            won=len(won),
            revenue=round(sum(to_float(s.get("deal_amount")) for s in won), 2),
        ))
    return outcomes
