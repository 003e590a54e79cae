# portalbot/schemas.py
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class MessageIn(BaseModel):
    text: str = Field("", max_length=2000)


class IntentProbabilityOut(BaseModel):
    intent: str
    probability: float = Field(..., ge=0.0, le=1.0)


class PredictionOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    intent: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    responses: List[str] = Field(default_factory=list)
    all_probabilities: List[IntentProbabilityOut] = Field(default_factory=list, alias="allProbabilities")


class ChatReplyOut(BaseModel):
    status: str
    response: str
    intent: Optional[str] = None
    confidence: Optional[float] = None
    error_code: Optional[str] = None


class LoadOut(BaseModel):
    status: str
    intents: List[str] = Field(default_factory=list)
    vocabulary_size: int = 0
    version: Optional[str] = None
