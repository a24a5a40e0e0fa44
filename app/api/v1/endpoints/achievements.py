"""Achievement catalog endpoints."""

import logging
import re

from fastapi import APIRouter, Depends, HTTPException, Request, status
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.config import settings
from app.db.achievement_catalog import AchievementCatalog, get_achievement_catalog
from app.dependencies import get_current_actor, require_admin
from app.models.achievement import Achievement, AchievementCreateRequest
from app.models.auth import Actor, ApiErrorResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/achievements", tags=["Achievements"])
limiter = Limiter(key_func=get_remote_address)


def _slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_")


@router.get(
    "",
    summary="List all achievements",
)
@limiter.limit(settings.RATE_LIMIT)
async def list_achievements(
    request: Request,
    actor: Actor = Depends(get_current_actor),
    catalog: AchievementCatalog = Depends(get_achievement_catalog),
) -> dict:
    """Return every achievement definition."""
    achievements = catalog.all()
    return {
        "count": len(achievements),
        "achievements": [a.model_dump(by_alias=True) for a in achievements],
    }


@router.get(
    "/{achievement_id}",
    response_model=Achievement,
    responses={404: {"model": ApiErrorResponse}},
    summary="Get one achievement",
)
@limiter.limit(settings.RATE_LIMIT)
async def get_achievement(
    request: Request,
    achievement_id: str,
    actor: Actor = Depends(get_current_actor),
    catalog: AchievementCatalog = Depends(get_achievement_catalog),
) -> Achievement:
    """Return a single achievement definition."""
    achievement = catalog.get(achievement_id)
    if achievement is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": {"code": "achievement_not_found", "message": "Achievement not found"}},
        )
    return achievement


@router.post(
    "",
    response_model=Achievement,
    status_code=201,
    responses={403: {"model": ApiErrorResponse}, 409: {"model": ApiErrorResponse}},
    summary="Add an achievement to the catalog (admin only)",
)
@limiter.limit(settings.RATE_LIMIT)
async def create_achievement(
    request: Request,
    body: AchievementCreateRequest,
    actor: Actor = Depends(require_admin),
    catalog: AchievementCatalog = Depends(get_achievement_catalog),
) -> Achievement:
    """Create a catalog entry. The ID defaults to a slug of the name."""
    achievement = Achievement(
        id=body.id or _slugify(body.name),
        name=body.name,
        description=body.description,
        category=body.category,
        icon=body.icon,
        requirement=body.requirement,
        points=body.points,
    )
    try:
        created = catalog.create(achievement)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error": {"code": "achievement_exists", "message": "An achievement with this ID or name already exists"}},
        )
    logger.info("Admin %s created achievement %s", actor.uid, created.id)
    return created
