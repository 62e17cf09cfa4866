"""Core data models for the live copilot."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class RecognizerState(str, Enum):
    IDLE = "IDLE"
    LISTENING = "LISTENING"
    RESTARTING = "RESTARTING"
    ERROR = "ERROR"


class RecognitionKind(str, Enum):
    PARTIAL = "partial"
    FINAL = "final"
    ERROR = "error"
    ENDED = "ended"


class KeyMoment(str, Enum):
    DECISION = "decision"
    NUMBER = "number"
    RISK = "risk"


class MicPermission(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"
    PROMPT = "prompt"


class SessionSignal(str, Enum):
    """One-shot events for the surrounding UI."""

    TRIAL_ENDED = "trial_ended"
    LOW_CREDITS = "low_credits"
    OUT_OF_CREDITS = "out_of_credits"
    MIC_PERMISSION_REQUIRED = "mic_permission_required"


@dataclass
class AudioFrame:
    pcm16_bytes: bytes
    sample_rate: int = 16000
    channels: int = 1
    timestamp_ms: int = 0


@dataclass
class RecognitionEvent:
    kind: str
    text: str = ""
    code: str = ""
    message: str = ""
    retryable: bool = False


@dataclass
class TranscriptEntry:
    id: int
    time: str
    speaker: str
    text: str
    bookmarked: bool = False
    key_moment: Optional[KeyMoment] = None


@dataclass
class SessionSnapshot:
    listening: bool
    listening_seconds: int
    demo_seconds_used: int
    interim_text: str


@dataclass
class KnowledgeCard:
    id: str
    emoji: str
    title: str
    content: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    sources: List[str] = field(default_factory=list)
    confidence: int = 50


@dataclass
class PredictedPath:
    text: str
    probability: int = 0
    why: str = ""


@dataclass
class TalkingPoint:
    text: str
    tone: str = "neutral"


@dataclass
class FollowUp:
    text: str


@dataclass
class EnrichmentResult:
    knowledge_cards: List[KnowledgeCard] = field(default_factory=list)
    predicted_paths: List[PredictedPath] = field(default_factory=list)
    talking_points: List[TalkingPoint] = field(default_factory=list)
    follow_ups: List[FollowUp] = field(default_factory=list)
    fetched_at: Optional[float] = None

    def is_empty(self) -> bool:
        return not (
            self.knowledge_cards or self.predicted_paths or self.talking_points or self.follow_ups
        )
