"""
Lead-source ROI and pipeline value.

Revenue is real (sales_outcomes.deal_amount of the campaign's leads); cost is
whatever the CostModel says, which by default is a proxy.  Rows carry
``estimated=True`` so the UI can say so.
"""

from __future__ import annotations

import asyncio
import logging

from analytics.cost import DEFAULT_COST_MODEL, CostModel
from analytics.helpers import HOT_LEAD_STATUS, group_by, to_float
from analytics.schemas import LeadSourceROI, PipelineValue
from analytics.scope import ScopedClient

logger = logging.getLogger(__name__)


def roi_percent(revenue: float, cost: float):
    if cost <= 0:
        return None
    return round((revenue - cost) / cost * 100)


async def lead_source_roi(
    client: ScopedClient,
    cost_model: CostModel = DEFAULT_COST_MODEL,
) -> list[LeadSourceROI]:
    campaigns_q = client.query("campaigns", "id,name").eq("archived", False)
    campaigns = await client.fetch(campaigns_q, "lead_source_roi campaigns")
    if not campaigns:
        return []

    leads_q = client.query("leads", "id,campaign_id,status").in_("campaign_id", [c["id"] for c in campaigns])
    sales_q = client.query("sales_outcomes", "lead_id,deal_amount")
    leads, sales = await asyncio.gather(
        client.fetch(leads_q, "lead_source_roi leads"),
        client.fetch(sales_q, "lead_source_roi sales"),
    )

    revenue_by_lead: dict = {}
    for sale in sales:
        lead_id = sale.get("lead_id")
        revenue_by_lead[lead_id] = revenue_by_lead.get(lead_id, 0.0) + to_float(sale.get("deal_amount"))

    leads_by_campaign = group_by(leads, "campaign_id")
    rows = []
    for c in campaigns:
        campaign_leads = leads_by_campaign.get(c["id"], [])
        if not campaign_leads:
            continue
        revenue = sum(revenue_by_lead.get(l["id"], 0.0) for l in campaign_leads)
        cost = cost_model.campaign_cost(revenue)
        rows.append(LeadSourceROI(
            source=c.get("name") or "Untitled campaign",
            leads=len(campaign_leads),
            hotLeads=sum(1 for l in campaign_leads if l.get("status") == HOT_LEAD_STATUS),
            revenue=round(revenue, 2),
            cost=round(cost, 2),
            roi=roi_percent(revenue, cost),
        ))
    return rows


async def total_pipeline_value(client: ScopedClient) -> PipelineValue:
    q = (
        client.query("leads", "estimated_pipeline_value")
        .not_.is_("estimated_pipeline_value", "null")
    )
    leads = await client.fetch(q, "total_pipeline_value")
    total = sum(to_float(l.get("estimated_pipeline_value")) for l in leads)
    return PipelineValue(totalPipelineValue=round(total, 2))
