"""API routes for the progression engine"""
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response

from progression.api.middleware import limiter
from progression.api.models import (
    AchievementListResponse,
    ActivityRequest,
    AppearanceUpdateRequest,
    AwardXPRequest,
    AwardXPResponse,
    HealthCheckResponse,
    HeartbeatResponse,
    JoinLocationRequest,
    LeaderboardResponse,
    LeaveResponse,
    PresenceRequest,
    RankResponse,
    StreakResponse,
    XPHistoryResponse,
)
from progression.exceptions import ValidationError
from progression.gamification.xp_engine import avatar_projection
from progression.models.achievement import AchievementCategory
from progression.models.leaderboard import OVERALL, scope_key
from progression.services.container import ServiceContainer, get_container

logger = logging.getLogger(__name__)

router = APIRouter()


def get_services() -> ServiceContainer:
    return get_container()


def _resolve_scope(type: str, skill: Optional[str]) -> str:
    if type == OVERALL:
        return OVERALL
    if type == "skill":
        if not skill:
            raise ValidationError(
                message="skill is required for skill leaderboards",
                field="skill",
                value=skill,
            )
        return scope_key(skill)
    raise ValidationError(
        message="type must be 'overall' or 'skill'",
        field="type",
        value=type,
    )


# ============================================
# Avatar
# ============================================

@router.post("/api/v1/avatar/{user_id}/xp", response_model=AwardXPResponse)
@limiter.limit("60/minute")
async def award_xp(
    request: Request,
    user_id: str,
    body: AwardXPRequest,
    services: ServiceContainer = Depends(get_services),
):
    """Award XP for a study activity (Rate limit: 60/minute)"""
    result = await services.engine.award(
        user_id,
        body.amount,
        skill=body.skill,
        source=body.source,
        reason=body.reason,
        activity_date=body.activity_date,
    )
    return result.to_dict()


@router.get("/api/v1/avatar/{user_id}")
@limiter.limit("60/minute")
async def get_avatar(
    request: Request,
    user_id: str,
    services: ServiceContainer = Depends(get_services),
):
    """Full avatar projection; the avatar is created on first read"""
    avatar = await services.engine.get_avatar(user_id)
    return avatar_projection(avatar)


@router.put("/api/v1/avatar/{user_id}/appearance")
@limiter.limit("20/minute")
async def update_appearance(
    request: Request,
    user_id: str,
    body: AppearanceUpdateRequest,
    services: ServiceContainer = Depends(get_services),
):
    """Merge appearance settings (Rate limit: 20/minute)"""
    avatar = await services.engine.update_appearance(
        user_id, body.appearance, display_name=body.display_name
    )
    return avatar_projection(avatar)


@router.post("/api/v1/avatar/{user_id}/activity", response_model=StreakResponse)
@limiter.limit("30/minute")
async def record_activity(
    request: Request,
    user_id: str,
    body: ActivityRequest,
    services: ServiceContainer = Depends(get_services),
):
    """Record a study day for the streak without awarding XP"""
    result = await services.engine.record_activity(
        user_id, activity_date=body.activity_date, source=body.source
    )
    return result.to_dict()


@router.get("/api/v1/avatar/{user_id}/xp/history", response_model=XPHistoryResponse)
@limiter.limit("30/minute")
async def get_xp_history(
    request: Request,
    user_id: str,
    limit: int = Query(50, ge=1, le=200),
    services: ServiceContainer = Depends(get_services),
):
    """Most recent XP ledger rows first"""
    transactions = await services.engine.get_xp_history(user_id, limit=limit)
    return {
        "user_id": user_id,
        "transactions": [
            {
                "amount": tx.amount,
                "skill": tx.skill.value if tx.skill else None,
                "source": tx.source,
                "reason": tx.reason,
                "awarded_at": tx.awarded_at,
            }
            for tx in transactions
        ],
    }


# ============================================
# Achievements
# ============================================

@router.get("/api/v1/achievements", response_model=AchievementListResponse)
@limiter.limit("60/minute")
async def list_achievements(
    request: Request,
    category: Optional[str] = None,
    type: Optional[str] = None,
    user_id: Optional[str] = None,
    services: ServiceContainer = Depends(get_services),
):
    """
    List achievement definitions

    Secret achievements are hidden unless the user has earned them or
    ``type=secret`` is requested. With ``user_id`` each entry is marked
    earned/unearned.
    """
    parsed_category = AchievementCategory.parse(category) if category else None
    if type not in (None, "all", "secret"):
        raise ValidationError(message="type must be 'all' or 'secret'", field="type", value=type)

    earned_at = {}
    if user_id:
        avatar = await services.store.get_avatar(user_id)
        if avatar is not None:
            earned_at = {earned.id: earned.earned_at for earned in avatar.achievements}

    definitions = services.catalog.list(
        category=parsed_category,
        earned_ids=earned_at,
        secret_only=type == "secret",
    )

    achievements = []
    for definition in definitions:
        info = definition.to_dict()
        if user_id:
            info["earned"] = definition.id in earned_at
            info["earned_at"] = earned_at.get(definition.id)
        achievements.append(info)

    return {"achievements": achievements, "total": len(achievements)}


# ============================================
# Leaderboard
# ============================================

@router.get("/api/v1/leaderboard", response_model=LeaderboardResponse)
@limiter.limit("60/minute")
async def get_leaderboard(
    request: Request,
    type: str = OVERALL,
    skill: Optional[str] = None,
    limit: int = Query(10, ge=1, le=100),
    services: ServiceContainer = Depends(get_services),
):
    """Top users overall or for one skill"""
    scope = _resolve_scope(type, skill)
    entries = await services.leaderboard.top(limit, scope)
    return {"scope": scope, "entries": [entry.to_dict() for entry in entries]}


@router.get("/api/v1/leaderboard/rank/{user_id}", response_model=RankResponse)
@limiter.limit("60/minute")
async def get_rank(
    request: Request,
    user_id: str,
    type: str = OVERALL,
    skill: Optional[str] = None,
    services: ServiceContainer = Depends(get_services),
):
    """1-based rank of a user; null when the user is not ranked yet"""
    scope = _resolve_scope(type, skill)
    rank = await services.leaderboard.rank_of(user_id, scope)
    return {"user_id": user_id, "scope": scope, "rank": rank}


# ============================================
# Campus
# ============================================

@router.get("/api/v1/campus/locations")
@limiter.limit("60/minute")
async def list_locations(
    request: Request,
    user_id: Optional[str] = None,
    services: ServiceContainer = Depends(get_services),
):
    """Campus locations; with user_id, only those the user may enter"""
    locations = await services.presence.list_locations(user_id)
    return {"locations": [location.to_dict() for location in locations]}


@router.post("/api/v1/campus/locations/{location_id}/join")
@limiter.limit("30/minute")
async def join_location(
    request: Request,
    location_id: str,
    body: JoinLocationRequest,
    services: ServiceContainer = Depends(get_services),
):
    """Join a location (leaves any other location first)"""
    result = await services.presence.join(body.user_id, location_id, display_name=body.display_name)
    return result.to_dict()


@router.post("/api/v1/campus/locations/{location_id}/leave", response_model=LeaveResponse)
@limiter.limit("30/minute")
async def leave_location(
    request: Request,
    location_id: str,
    body: PresenceRequest,
    services: ServiceContainer = Depends(get_services),
):
    left = await services.presence.leave(body.user_id, location_id)
    return {"user_id": body.user_id, "location_id": location_id, "left": left}


@router.post("/api/v1/campus/heartbeat", response_model=HeartbeatResponse)
@limiter.limit("120/minute")
async def heartbeat(
    request: Request,
    body: PresenceRequest,
    services: ServiceContainer = Depends(get_services),
):
    """Keep the caller's campus presence alive"""
    location_id = await services.presence.heartbeat(body.user_id)
    return {"user_id": body.user_id, "location_id": location_id, "present": location_id is not None}


@router.post(
    "/api/v1/campus/locations/{location_id}/activities/{activity_id}",
    response_model=AwardXPResponse,
)
@limiter.limit("30/minute")
async def complete_activity(
    request: Request,
    location_id: str,
    activity_id: str,
    body: PresenceRequest,
    services: ServiceContainer = Depends(get_services),
):
    """Complete a location activity for its XP reward"""
    result = await services.presence.complete_activity(body.user_id, location_id, activity_id)
    return result.to_dict()


# ============================================
# Service
# ============================================

@router.get("/health", response_model=HealthCheckResponse)
@limiter.limit("60/minute")
async def health_check(
    request: Request,
    services: ServiceContainer = Depends(get_services),
):
    """Health check endpoint (Rate limit: 60/minute for monitoring systems)"""
    try:
        await services.store.get_avatar("__health__")
        store_status = "connected"
    except Exception as e:
        logger.error(f"Progress store health check failed: {e}")
        store_status = "disconnected"

    return {
        "status": "healthy" if store_status == "connected" else "degraded",
        "store": store_status,
        "timestamp": datetime.now(timezone.utc),
    }


@router.get("/metrics")
async def metrics_endpoint():
    """Expose Prometheus metrics"""
    from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
