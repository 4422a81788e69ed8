"""AI feature API — task analysis and group emoji suggestion.

Both routes always answer 200 for a valid request: when no credential
is available or the provider misbehaves, the body carries the default
output (ai_generated=false, or the fallback emoji).
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from auratask.ai import CompletionProvider, get_provider
from auratask.auth.dependencies import CurrentIdentity, get_current_user
from auratask.db.engine import get_db
from auratask.schemas.ai import (
    GroupEmojiRead,
    GroupEmojiRequest,
    TaskAnalysis,
    TaskAnalysisRequest,
)
from auratask.services.ai_service import AIService

router = APIRouter(prefix="/ai")


def get_completion_provider() -> CompletionProvider:
    """FastAPI dependency — the configured completion provider."""
    return get_provider()


def _ai_svc(
    db: AsyncSession = Depends(get_db),
    provider: CompletionProvider = Depends(get_completion_provider),
) -> AIService:
    return AIService(db, provider)


@router.post("/process-task", response_model=TaskAnalysis)
async def process_task(
    body: TaskAnalysisRequest,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: AIService = Depends(_ai_svc),
):
    return await svc.analyze_task(
        identity.principal.id,
        title=body.title,
        description=body.description,
        enable_ranking=body.enable_ai_ranking,
        enable_subtasks=body.enable_ai_subtasks,
    )


@router.post("/group-emoji", response_model=GroupEmojiRead)
async def assign_group_emoji(
    body: GroupEmojiRequest,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: AIService = Depends(_ai_svc),
):
    emoji = await svc.suggest_group_emoji(identity.principal.id, body.group_name)
    return {"emoji": emoji}
