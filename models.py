from enum import Enum
from pydantic import BaseModel, Field
from typing import List, Optional

class AttemptState(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SIMULATED = "simulated"

class QualityTier(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    NEEDS_IMPROVEMENT = "needs improvement"

class ProviderConfig(BaseModel):
    api_key: Optional[str] = None
    endpoint: Optional[str] = None
    app_id: Optional[str] = None
    token: Optional[str] = None
    cluster: str = "volc_asr_common"
    language: str = "en-US"
    timeout_sec: float = 5.0

    @property
    def is_configured(self) -> bool:
        return all([self.api_key, self.endpoint, self.app_id, self.token])

class WordTiming(BaseModel):
    word: str
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    start_time: float = 0.0
    end_time: float = 0.0

class ProviderResult(BaseModel):
    transcript: str = ""
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    words: Optional[List[WordTiming]] = None
    alternatives: List[str] = Field(default_factory=list)

class ScoreBreakdown(BaseModel):
    core_accuracy: float
    stress_accuracy: float
    syllable_accuracy: float
    accent_bonus: int
    used_provider_confidence: bool
    raw_accuracy: int = Field(ge=0, le=100)
    boosted_accuracy: int = Field(ge=0, le=100)

class PronunciationAnalysis(BaseModel):
    overall_quality: QualityTier
    specific_issues: List[str] = Field(default_factory=list)
    strengths: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)

class PronunciationResult(BaseModel):
    target_word: str
    transcript: str
    raw_accuracy: int = Field(ge=0, le=100)
    boosted_accuracy: int = Field(ge=0, le=100)
    passed: bool
    analysis: PronunciationAnalysis
    feedback_message: str
    alternatives: List[str] = Field(default_factory=list)
    provider: str
    breakdown: Optional[ScoreBreakdown] = None

class ScoreRequest(BaseModel):
    target_word: str
    transcript: str
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)

class TranscriptionOutcome(BaseModel):
    result: ProviderResult
    state: AttemptState
    provider: str
    failure_reason: Optional[str] = None
