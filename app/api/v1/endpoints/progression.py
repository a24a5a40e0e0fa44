"""User progression endpoints: activity recording and progression reads.

Domain errors raised by the service (``Forbidden``, ``NotFound``,
``InvalidInput``, ``StorageFailure``) are turned into error responses by the
handler registered in ``app.main``.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.config import settings
from app.dependencies import get_current_actor, require_admin
from app.models.auth import Actor, ApiErrorResponse
from app.models.progression import (
    ActivityResult,
    LoginProgressRequest,
    ProgressionDetail,
    PuzzleProgressRequest,
    QuizProgressRequest,
    ReadingProgressRequest,
)
from app.services.progression_service import ProgressionService, get_progression_service

router = APIRouter(prefix="/progression", tags=["Progression"])
limiter = Limiter(key_func=get_remote_address)

_ERRORS = {
    400: {"model": ApiErrorResponse},
    403: {"model": ApiErrorResponse},
}


@router.get(
    "/{user_id}",
    response_model=ProgressionDetail,
    responses={403: {"model": ApiErrorResponse}, 404: {"model": ApiErrorResponse}},
    summary="Get a user's progression",
)
@limiter.limit(settings.RATE_LIMIT)
async def read_progression(
    request: Request,
    user_id: str,
    actor: Actor = Depends(get_current_actor),
    service: ProgressionService = Depends(get_progression_service),
) -> ProgressionDetail:
    """Return progression with unlocked achievements resolved. Own data, or any user's for admins."""
    return service.get_progression(user_id, actor)


@router.post(
    "/quiz",
    response_model=ActivityResult,
    responses=_ERRORS,
    summary="Record a completed quiz",
)
@limiter.limit(settings.RATE_LIMIT)
async def record_quiz(
    request: Request,
    body: QuizProgressRequest,
    actor: Actor = Depends(get_current_actor),
    service: ProgressionService = Depends(get_progression_service),
) -> ActivityResult:
    """Log the quiz, add its score to the user's points and update the quiz streak."""
    service.authorize(actor, body.user_id)
    return service.record_quiz(body.user_id, body)


@router.post(
    "/puzzle",
    response_model=ActivityResult,
    responses=_ERRORS,
    summary="Record a solved puzzle",
)
@limiter.limit(settings.RATE_LIMIT)
async def record_puzzle(
    request: Request,
    body: PuzzleProgressRequest,
    actor: Actor = Depends(get_current_actor),
    service: ProgressionService = Depends(get_progression_service),
) -> ActivityResult:
    """Log the puzzle and award the flat puzzle reward."""
    service.authorize(actor, body.user_id)
    return service.record_puzzle(body.user_id, body)


@router.post(
    "/reading",
    response_model=ActivityResult,
    responses=_ERRORS,
    summary="Save or complete a reading",
)
@limiter.limit(settings.RATE_LIMIT)
async def record_reading(
    request: Request,
    body: ReadingProgressRequest,
    actor: Actor = Depends(get_current_actor),
    service: ProgressionService = Depends(get_progression_service),
) -> ActivityResult:
    """Save a reading, or update its completion state if it was saved before."""
    service.authorize(actor, body.user_id)
    return service.record_reading(body.user_id, body)


@router.post(
    "/login",
    response_model=ActivityResult,
    responses=_ERRORS,
    summary="Record a login for streak tracking",
)
@limiter.limit(settings.RATE_LIMIT)
async def record_login(
    request: Request,
    body: Optional[LoginProgressRequest] = None,
    actor: Actor = Depends(get_current_actor),
    service: ProgressionService = Depends(get_progression_service),
) -> ActivityResult:
    """Update the calendar-day login streak. Targets the caller unless ``userId`` is given."""
    user_id = body.user_id if body is not None and body.user_id else actor.uid
    service.authorize(actor, user_id)
    return service.record_login(user_id)


@router.delete(
    "",
    responses={403: {"model": ApiErrorResponse}},
    summary="Reset all progression data (admin only)",
)
@limiter.limit(settings.RATE_LIMIT)
async def reset_progressions(
    request: Request,
    actor: Actor = Depends(require_admin),
    service: ProgressionService = Depends(get_progression_service),
) -> dict:
    """Delete every user's progression record."""
    deleted = service.reset_all(actor)
    return {"deleted": deleted}
