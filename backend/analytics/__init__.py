"""
Metrics aggregation layer for the lead/campaign dashboard.

Raw Supabase rows → tenant-scoped queries (scope) → aggregators (funnel,
journey, response_time, cost, followup, confidence, roi, reps, trends) →
pydantic shapes (schemas) → dashboard sections (dashboard).
"""

from analytics.dashboard import SECTIONS, build_dashboard, normalize, run_section
from analytics.errors import AnalyticsError, QueryError, TenantAccessError
from analytics.scope import GLOBAL_ADMIN, QueryScope, ScopedClient, build_scope

__all__ = [
    "SECTIONS",
    "build_dashboard",
    "run_section",
    "normalize",
    "AnalyticsError",
    "QueryError",
    "TenantAccessError",
    "GLOBAL_ADMIN",
    "QueryScope",
    "ScopedClient",
    "build_scope",
]
