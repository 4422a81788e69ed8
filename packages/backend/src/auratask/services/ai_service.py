"""AI feature service — the credential consumers.

Task analysis (speed/importance scoring, subtask suggestions) and group
emoji suggestion. Each call resolves a credential first. Without one,
or when the provider fails or answers with something unusable, the
caller gets the documented default output and the request succeeds.
A pooled key counted for a failed call stays counted.
"""

import json
import math
import re
import uuid

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from auratask.ai.base import CompletionError, CompletionProvider
from auratask.schemas.ai import MAX_SUBTASKS, SCORE_MAX, SCORE_MIN, TaskAnalysis
from auratask.services.credential_pool import CredentialPool
from auratask.services.credential_resolver import CredentialResolver
from auratask.services.settings_service import SettingsService

logger = structlog.get_logger()

DEFAULT_GROUP_EMOJI = "📁"
MAX_EMOJI_LENGTH = 4

_FENCE_RE = re.compile(r"```(?:json)?\s*|\s*```")


# ═══════════════════════════════════════════════════════════
# Prompts
# ═══════════════════════════════════════════════════════════


def build_task_prompt(
    title: str, description: str, enable_ranking: bool, enable_subtasks: bool
) -> str:
    parts = [
        "Analyze this task and answer with a single JSON object.",
        f"Title: {title}",
        f"Description: {description or 'none'}",
        "",
    ]
    if enable_ranking:
        parts += [
            "Include these fields:",
            f"- ai_speed_score: how quick it is to do ({SCORE_MIN}-{SCORE_MAX})",
            f"- ai_importance_score: how important it is ({SCORE_MIN}-{SCORE_MAX})",
            "- speed_tag: one of very fast, fast, medium, slow, very slow",
            "- importance_tag: one of critical, high, medium, low",
            "- emoji: one emoji that fits the task",
        ]
    if enable_subtasks:
        parts.append(
            f"- sub_tasks: array of at most {MAX_SUBTASKS} short subtask titles"
        )
    parts += ["", "Return only the JSON:"]
    return "\n".join(parts)


def build_group_emoji_prompt(group_name: str) -> str:
    return "\n".join([
        "Suggest the single most fitting emoji for a task group.",
        f'Group name: "{group_name}"',
        "",
        "Rules:",
        "1. Return ONLY the emoji character, nothing else",
        "2. Pick an emoji that represents the group's theme",
        "3. Prefer common, recognizable emojis",
        "",
        "Examples: work → 💼, home → 🏠, study → 📚, sport → ⚽, shopping → 🛒",
        "",
        "Emoji:",
    ])


# ═══════════════════════════════════════════════════════════
# Answer parsing
# ═══════════════════════════════════════════════════════════


def parse_json_answer(text: str) -> dict:
    """Parse a model answer that may be wrapped in ```json fences."""
    data = json.loads(_FENCE_RE.sub("", text).strip())
    if not isinstance(data, dict):
        raise ValueError("Expected a JSON object")
    return data


def scale_score(value, weight: float) -> int:
    """Apply a user weight to a raw score, rounded half-up and clamped."""
    scaled = math.floor(float(value) * weight + 0.5)
    return min(SCORE_MAX, max(SCORE_MIN, scaled))


def _subtask_titles(raw) -> list[str]:
    titles = []
    for item in raw:
        if isinstance(item, dict):
            item = item.get("title", "")
        title = str(item).strip()
        if title:
            titles.append(title)
    return titles[:MAX_SUBTASKS]


# ═══════════════════════════════════════════════════════════
# Service
# ═══════════════════════════════════════════════════════════


class AIService:
    """Runs AI features with whatever credential the resolver yields."""

    def __init__(
        self,
        db: AsyncSession,
        provider: CompletionProvider,
        resolver: CredentialResolver | None = None,
    ):
        self.db = db
        self.provider = provider
        self.resolver = resolver or CredentialResolver(db, CredentialPool(db))

    async def analyze_task(
        self,
        principal_id: uuid.UUID,
        title: str,
        description: str = "",
        enable_ranking: bool = False,
        enable_subtasks: bool = False,
    ) -> TaskAnalysis:
        """Score a task and/or suggest subtasks.

        With neither feature enabled no credential is resolved at all.
        """
        fallback = TaskAnalysis()
        if not (enable_ranking or enable_subtasks):
            return fallback

        log = logger.bind(principal_id=str(principal_id))
        credential = await self.resolver.resolve(principal_id)
        if credential is None:
            log.info("ai.task_analysis.no_credential")
            return fallback

        prompt = build_task_prompt(title, description, enable_ranking, enable_subtasks)
        try:
            answer = parse_json_answer(
                await self.provider.generate(credential.api_key, prompt)
            )
        except CompletionError as e:
            log.warning(
                "ai.task_analysis.provider_failed",
                error=str(e),
                credential_source=credential.source,
            )
            return fallback
        except ValueError as e:
            log.warning("ai.task_analysis.unparseable", error=str(e))
            return fallback

        fields: dict = {}
        if enable_ranking:
            speed_weight, importance_weight = await self._weights(principal_id)
            for name, weight in (
                ("ai_speed_score", speed_weight),
                ("ai_importance_score", importance_weight),
            ):
                if name in answer:
                    try:
                        fields[name] = scale_score(answer[name], weight)
                    except (TypeError, ValueError):
                        log.debug("ai.task_analysis.bad_score", field=name)
            for name in ("speed_tag", "importance_tag", "emoji"):
                value = answer.get(name)
                if isinstance(value, str) and value.strip():
                    fields[name] = value.strip()
        if enable_subtasks and isinstance(answer.get("sub_tasks"), list):
            fields["sub_tasks"] = _subtask_titles(answer["sub_tasks"])

        log.info(
            "ai.task_analysis.completed",
            credential_source=credential.source,
            enable_ranking=enable_ranking,
            enable_subtasks=enable_subtasks,
        )
        return fallback.model_copy(update={**fields, "ai_generated": True})

    async def suggest_group_emoji(self, principal_id: uuid.UUID, group_name: str) -> str:
        """One emoji for a group name; DEFAULT_GROUP_EMOJI on any trouble."""
        credential = await self.resolver.resolve(principal_id)
        if credential is None:
            return DEFAULT_GROUP_EMOJI

        try:
            text = await self.provider.generate(
                credential.api_key, build_group_emoji_prompt(group_name)
            )
        except CompletionError as e:
            logger.warning(
                "ai.group_emoji.provider_failed",
                principal_id=str(principal_id),
                error=str(e),
            )
            return DEFAULT_GROUP_EMOJI

        emoji = text.strip()
        if not emoji or len(emoji) > MAX_EMOJI_LENGTH:
            return DEFAULT_GROUP_EMOJI
        return emoji

    async def _weights(self, principal_id: uuid.UUID) -> tuple[float, float]:
        try:
            settings = await SettingsService(self.db).get_settings(principal_id)
        except SQLAlchemyError as e:
            logger.warning("ai.weights_lookup_failed", error=str(e))
            await self.db.rollback()
            return 1.0, 1.0
        if settings is None:
            return 1.0, 1.0
        return (
            settings.ai_speed_weight or 1.0,
            settings.ai_importance_weight or 1.0,
        )
