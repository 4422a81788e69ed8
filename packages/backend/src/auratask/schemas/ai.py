"""Pydantic schemas for the AI-assisted features.

TaskAnalysis defaults double as the safe fallback returned whenever no
credential is available or the model's answer can't be used.
"""

from pydantic import BaseModel, Field

SCORE_MIN = 1
SCORE_MAX = 20
MAX_SUBTASKS = 5


class TaskAnalysisRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: str = Field(default="", max_length=5000)
    enable_ai_ranking: bool = False
    enable_ai_subtasks: bool = False


class TaskAnalysis(BaseModel):
    ai_speed_score: int = Field(default=10, ge=SCORE_MIN, le=SCORE_MAX)
    ai_importance_score: int = Field(default=10, ge=SCORE_MIN, le=SCORE_MAX)
    speed_tag: str = "medium"
    importance_tag: str = "medium"
    emoji: str = "📝"
    sub_tasks: list[str] = Field(default_factory=list)
    ai_generated: bool = False


class GroupEmojiRequest(BaseModel):
    group_name: str = Field(..., min_length=1, max_length=100)


class GroupEmojiRead(BaseModel):
    emoji: str
