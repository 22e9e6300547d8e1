"""Lead & Campaign Analytics - Dashboard Metrics Server"""
from fastapi import FastAPI, APIRouter, HTTPException, Depends, Header, Query
from starlette.middleware.cors import CORSMiddleware
import asyncio
import logging
from pydantic import BaseModel
from typing import Optional, Dict, Any
from datetime import datetime, timezone

from analytics import settings
from analytics.dashboard import SECTIONS, build_dashboard, run_section
from analytics.db import get_supabase
from analytics.errors import TenantAccessError
from analytics.scope import GLOBAL_ADMIN

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Lead & Campaign Analytics")
api_router = APIRouter(prefix="/api")


# ============ Models ============

class CurrentUser(BaseModel):
    id: str
    email: Optional[str] = None
    role: Optional[str] = None
    tenant_id: Optional[str] = None


# ============ Dependencies ============

def get_db():
    """Supabase client used by the analytics endpoints (overridden in tests)."""
    return get_supabase()


async def get_current_user(
    authorization: Optional[str] = Header(None),
    supabase=Depends(get_db)
) -> CurrentUser:
    """Resolve the caller from a Supabase access token and their users_profile row"""
    if not authorization:
        raise HTTPException(status_code=401, detail="Authorization header required")

    try:
        scheme, token = authorization.split()
        if scheme.lower() != "bearer":
            raise HTTPException(status_code=401, detail="Invalid authentication scheme")
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid authorization header")

    try:
        response = await asyncio.to_thread(supabase.auth.get_user, token)
    except Exception as e:
        logger.warning(f"Token rejected by Supabase Auth: {e}")
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    user = getattr(response, "user", None)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    # identity lookup, not tenant data: read by user id before any scope exists
    try:
        result = await asyncio.to_thread(
            supabase.table("users_profile").select("id,email,role,tenant_id").eq("id", user.id).limit(1).execute
        )
    except Exception as e:
        logger.error(f"users_profile lookup failed for {user.id}: {e}")
        raise HTTPException(status_code=503, detail="User profile lookup failed")
    if not result.data:
        raise HTTPException(status_code=403, detail="User profile not found")

    profile = result.data[0]
    current = CurrentUser(
        id=str(profile["id"]),
        email=profile.get("email") or getattr(user, "email", None),
        role=profile.get("role"),
        tenant_id=profile.get("tenant_id"),
    )
    if current.role != GLOBAL_ADMIN and not current.tenant_id:
        raise HTTPException(status_code=403, detail="No tenant access configured")
    return current


def lookback_days(
    days: int = Query(settings.DEFAULT_LOOKBACK_DAYS, ge=1, le=settings.MAX_LOOKBACK_DAYS)
) -> int:
    return days


# ============ Analytics Endpoints ============

@api_router.get("/analytics/sections")
async def list_sections():
    return {"sections": list(SECTIONS)}


@api_router.get("/analytics/dashboard")
async def get_dashboard(
    sections: Optional[str] = Query(None, description="Comma-separated section names"),
    days: int = Depends(lookback_days),
    current_user: CurrentUser = Depends(get_current_user),
    supabase=Depends(get_db)
) -> Dict[str, Any]:
    """All (or the requested) dashboard sections for the caller's tenant"""
    requested = [s.strip() for s in sections.split(",") if s.strip()] if sections else None
    try:
        return await build_dashboard(
            supabase, current_user.role, current_user.tenant_id, days, requested
        )
    except TenantAccessError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@api_router.get("/analytics/{section}")
async def get_section(
    section: str,
    days: int = Depends(lookback_days),
    current_user: CurrentUser = Depends(get_current_user),
    supabase=Depends(get_db)
):
    """A single dashboard section; query failures come back as {"error": ...}"""
    if section not in SECTIONS:
        raise HTTPException(status_code=404, detail=f"Unknown analytics section: {section}")
    try:
        return await run_section(
            supabase, current_user.role, current_user.tenant_id, section, days
        )
    except TenantAccessError as e:
        raise HTTPException(status_code=403, detail=str(e))


# ============ Health Check ============

@api_router.get("/")
async def root():
    return {"message": "Lead & Campaign Analytics API"}


@api_router.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "database": "configured" if settings.DB_AVAILABLE else "not configured",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# Include router and add middleware
app.include_router(api_router)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)
