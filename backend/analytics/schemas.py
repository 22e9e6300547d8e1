"""
Response shapes for the dashboard sections.

Field names are the JSON keys the presentation layer reads, so several of
them are camelCase on purpose.  Every aggregator returns one of these (or a
list of them); dashboard.normalize() turns them into plain dicts.
"""

from typing import Optional

from pydantic import BaseModel, Field

NO_DATA = "—"   # sentinel for "insufficient data", never an error


# ── Funnel ─────────────────────────────────────────────────────────────

class FunnelSummary(BaseModel):
    """Tenant-level funnel: leads added → outbound → inbound → hot."""
    totalLeads: int = 0
    hotLeads: int = 0
    messagesSent: int = 0
    responses: int = 0
    conversionRate: float = 0


class CampaignOverview(BaseModel):
    id: str
    name: str
    is_active: bool = False
    created_at: Optional[str] = None
    totalLeads: int = 0
    hotLeads: int = 0
    messagesSent: int = 0
    responses: int = 0
    conversionRate: float = 0


class FunnelRow(BaseModel):
    """One row of the campaign performance table."""
    campaign: str
    campaignId: str
    sent: int = 0
    opened: int = 0          # estimated, see funnel.ESTIMATED_OPEN_RATE
    replied: int = 0
    converted: int = 0
    rate: float = 0
    status: str = "paused"   # 'active' | 'paused'
    totalLeads: int = 0
    created_at: Optional[str] = None


class PerformanceMetrics(BaseModel):
    totalMessages: int = 0
    totalResponses: int = 0
    responseRate: float = 0
    totalConversions: int = 0
    conversionRate: float = 0
    activeCampaigns: int = 0
    averagePerformance: float = 0


class ArchetypePerformance(BaseModel):
    name: str
    campaigns: int = 0
    conversion: float = 0


# ── Response time ──────────────────────────────────────────────────────

class ResponseTimeSummary(BaseModel):
    avg_response: str = NO_DATA
    fastest_response: str = NO_DATA
    slowest_response: str = NO_DATA
    sample_size: int = 0


class HandoffSummary(ResponseTimeSummary):
    """Hot-lead handoff: marked hot → first call, plus 7-day call outcomes."""
    connected: int = 0
    voicemail: int = 0
    no_answer: int = 0
    not_fit: int = 0
    qualified: int = 0
    interested: int = 0


class ReplyPacing(BaseModel):
    averageMinutes: int = 0
    responsePairs: int = 0


# ── Cost / ROI ─────────────────────────────────────────────────────────

class CostPoint(BaseModel):
    """Estimated cost per hot lead for one calendar month."""
    month: str               # "YYYY-MM"
    messagesSent: int = 0
    hotLeads: int = 0
    estimatedCost: float = 0
    costPerHot: int = 0
    estimated: bool = True   # always a heuristic, never ledger-backed


class LeadSourceROI(BaseModel):
    source: str
    leads: int = 0
    hotLeads: int = 0
    revenue: float = 0
    cost: float = 0
    roi: Optional[int] = None
    estimated: bool = True   # cost is a proxy, see cost.HeuristicCostModel


# ── Follow-up / AI ─────────────────────────────────────────────────────

class FollowupTiming(BaseModel):
    day: int
    responseRate: float = 0


class ConfidenceBin(BaseModel):
    bin: float
    label: str
    actualHot: float = 0     # share of records whose lead reached Hot Lead
    count: int = 0


class FollowupSettings(BaseModel):
    followup_delay_1: int = 3
    followup_delay_2: int = 7
    followup_delay_3: int = 14


class AIInsights(BaseModel):
    confidenceData: list[ConfidenceBin] = Field(default_factory=list)
    topPerformingPersonas: list[ArchetypePerformance] = Field(default_factory=list)
    followupTiming: list[FollowupTiming] = Field(default_factory=list)
    followupSettings: FollowupSettings = Field(default_factory=FollowupSettings)


# ── Journey ────────────────────────────────────────────────────────────

class JourneyStage(BaseModel):
    fromStage: str
    toStage: str
    countEntered: int = 0
    countExited: int = 0
    conversionRate: float = 0
    dropOffRate: float = 0


class StageTime(BaseModel):
    stage: str
    avgDays: float = 0


class DropoffReason(BaseModel):
    reason: str
    count: int = 0


class JourneyFunnel(BaseModel):
    """Uploaded → contacted → hot → converted, from the sales_metrics rollup."""
    funnelData: list[JourneyStage] = Field(default_factory=list)
    timeInStage: list[StageTime] = Field(default_factory=list)
    dropoffReasons: list[DropoffReason] = Field(default_factory=list)
    totalDropoffs: int = 0
    totalEntered: int = 0
    totalConverted: int = 0


# ── Reps / trends ──────────────────────────────────────────────────────

class RepPerformance(BaseModel):
    rep: str
    totalLeadsAssigned: int = 0
    hotLeadsGenerated: int = 0
    pipelineValue: float = 0
    conversionRate: float = 0


class RepOutcome(BaseModel):
    rep: str
    hotLeadsReceived: int = 0
    won: int = 0
    revenue: float = 0


class TrendPoint(BaseModel):
    period: str              # e.g. "Oct 19"
    hotLeadRate: float = 0
    replyRate: float = 0
    costPerHot: int = 0


class PipelineValue(BaseModel):
    totalPipelineValue: float = 0
