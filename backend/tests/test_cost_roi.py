"""
Cost estimation, cost-per-hot-lead, lead-source ROI and pipeline value tests.
"""
from datetime import datetime, timezone

import pytest

from conftest import TENANT_A, TENANT_B, FakeSupabase, make_client

from analytics.cost import (
    FALLBACK_COST_PER_HOT, CostModel, HeuristicCostModel, cost_per_hot, cost_per_hot_lead,
    month_windows,
)
from analytics.roi import lead_source_roi, roi_percent, total_pipeline_value


class FlatCostModel(CostModel):
    def message_cost(self, messages_sent):
        return 10.0 * messages_sent

    def campaign_cost(self, revenue):
        return 500.0


class TestHeuristicCostModel:

    def test_message_cost(self):
        model = HeuristicCostModel()
        assert model.message_cost(0) == 50
        assert model.message_cost(100) == pytest.approx(60)

    def test_campaign_cost_has_floor(self):
        model = HeuristicCostModel()
        assert model.campaign_cost(5000) == 1000
        assert model.campaign_cost(20000) == 2000

    def test_cost_per_hot_guarded(self):
        assert cost_per_hot(HeuristicCostModel(), 100, 0) == 0
        assert cost_per_hot(HeuristicCostModel(), 100, 2) == 30


class TestMonthWindows:

    def test_trailing_six_months_oldest_first(self):
        now = datetime(2026, 10, 19, tzinfo=timezone.utc)
        windows = month_windows(now)
        assert len(windows) == 6
        assert windows[0] == (datetime(2026, 5, 1, tzinfo=timezone.utc), datetime(2026, 6, 1, tzinfo=timezone.utc))
        assert windows[-1] == (datetime(2026, 10, 1, tzinfo=timezone.utc), datetime(2026, 11, 1, tzinfo=timezone.utc))

    def test_year_boundary(self):
        windows = month_windows(datetime(2026, 2, 10, tzinfo=timezone.utc))
        assert [f"{s:%Y-%m}" for s, _ in windows] == [
            "2025-09", "2025-10", "2025-11", "2025-12", "2026-01", "2026-02",
        ]
        assert windows[3][1] == datetime(2026, 1, 1, tzinfo=timezone.utc)


def _cost_tables():
    leads = [
        {"id": 1, "tenant_id": TENANT_A, "status": "Hot Lead", "marked_hot_at": "2026-10-05T10:00:00+00:00"},
        {"id": 2, "tenant_id": TENANT_A, "status": "Hot Lead", "marked_hot_at": "2026-10-01T00:00:00+00:00"},
        {"id": 3, "tenant_id": TENANT_A, "status": "Hot Lead", "marked_hot_at": "2026-09-30T23:59:59+00:00"},
        {"id": 4, "tenant_id": TENANT_B, "status": "Hot Lead", "marked_hot_at": "2026-10-05T10:00:00+00:00"},
    ]
    messages = (
        [{"tenant_id": TENANT_A, "direction": "outbound", "timestamp": "2026-10-10T09:00:00+00:00"}] * 100
        + [{"tenant_id": TENANT_A, "direction": "inbound", "timestamp": "2026-10-10T09:00:00+00:00"}] * 5
        + [{"tenant_id": TENANT_A, "direction": "outbound", "timestamp": "2026-09-15T09:00:00+00:00"}] * 10
        + [{"tenant_id": TENANT_B, "direction": "outbound", "timestamp": "2026-10-10T09:00:00+00:00"}] * 50
    )
    return {"leads": leads, "messages": messages}


class TestCostPerHotLead:

    @pytest.mark.asyncio
    async def test_monthly_points(self):
        points = await cost_per_hot_lead(make_client(FakeSupabase(_cost_tables())))
        assert [p.month for p in points] == [
            "2026-05", "2026-06", "2026-07", "2026-08", "2026-09", "2026-10",
        ]
        sep, oct_ = points[-2], points[-1]
        assert (oct_.messagesSent, oct_.hotLeads, oct_.estimatedCost, oct_.costPerHot) == (100, 2, 60.0, 30)
        assert (sep.messagesSent, sep.hotLeads, sep.estimatedCost, sep.costPerHot) == (10, 1, 51.0, 51)
        assert points[0].costPerHot == 0
        assert all(p.estimated for p in points)

    @pytest.mark.asyncio
    async def test_cost_model_is_pluggable(self):
        points = await cost_per_hot_lead(make_client(FakeSupabase(_cost_tables())), FlatCostModel())
        assert points[-1].costPerHot == 500

    @pytest.mark.asyncio
    async def test_query_failure_uses_fallback(self):
        points = await cost_per_hot_lead(make_client(FakeSupabase(failing={"messages"})))
        assert [p.costPerHot for p in points] == FALLBACK_COST_PER_HOT
        assert all(p.estimated for p in points)


class TestLeadSourceROI:

    def test_roi_percent(self):
        assert roi_percent(3000, 1000) == 200
        assert roi_percent(0, 1000) == -100
        assert roi_percent(100, 0) is None

    @pytest.mark.asyncio
    async def test_per_campaign_roi(self):
        db = FakeSupabase({
            "campaigns": [
                {"id": "c1", "tenant_id": TENANT_A, "name": "Spring Outreach", "archived": False},
                {"id": "c2", "tenant_id": TENANT_A, "name": "Empty", "archived": False},
                {"id": "c3", "tenant_id": TENANT_A, "name": "Old", "archived": True},
                {"id": "c4", "tenant_id": TENANT_A, "name": "Enterprise", "archived": False},
                {"id": "cb", "tenant_id": TENANT_B, "name": "Other", "archived": False},
            ],
            "leads": [
                {"id": "L1", "tenant_id": TENANT_A, "campaign_id": "c1", "status": "Hot Lead"},
                {"id": "L2", "tenant_id": TENANT_A, "campaign_id": "c1", "status": "New"},
                {"id": "L3", "tenant_id": TENANT_A, "campaign_id": "c3", "status": "New"},
                {"id": "L4", "tenant_id": TENANT_A, "campaign_id": "c4", "status": "Hot Lead"},
                {"id": "LB", "tenant_id": TENANT_B, "campaign_id": "cb", "status": "Hot Lead"},
            ],
            "sales_outcomes": [
                {"tenant_id": TENANT_A, "lead_id": "L1", "deal_amount": 5000},
                {"tenant_id": TENANT_A, "lead_id": "L2", "deal_amount": "2500.50"},
                {"tenant_id": TENANT_A, "lead_id": "L4", "deal_amount": 20000},
                {"tenant_id": TENANT_A, "lead_id": "L9", "deal_amount": 9999},
                {"tenant_id": TENANT_B, "lead_id": "L1", "deal_amount": 1_000_000},
            ],
        })
        rows = {r.source: r for r in await lead_source_roi(make_client(db))}

        assert set(rows) == {"Spring Outreach", "Enterprise"}
        spring = rows["Spring Outreach"]
        assert (spring.leads, spring.hotLeads, spring.revenue, spring.cost, spring.roi) == (2, 1, 7500.5, 1000, 650)
        assert spring.estimated is True
        enterprise = rows["Enterprise"]
        assert (enterprise.cost, enterprise.roi) == (2000, 900)

    @pytest.mark.asyncio
    async def test_no_campaigns(self):
        assert await lead_source_roi(make_client(FakeSupabase())) == []


class TestPipelineValue:

    @pytest.mark.asyncio
    async def test_sums_non_null_values(self):
        db = FakeSupabase({"leads": [
            {"tenant_id": TENANT_A, "estimated_pipeline_value": 1000},
            {"tenant_id": TENANT_A, "estimated_pipeline_value": "250.5"},
            {"tenant_id": TENANT_A, "estimated_pipeline_value": None},
            {"tenant_id": TENANT_B, "estimated_pipeline_value": 9999},
        ]})
        value = await total_pipeline_value(make_client(db))
        assert value.totalPipelineValue == 1250.5
