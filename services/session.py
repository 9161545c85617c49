import logging
import random
import uuid
from collections import OrderedDict, deque
from typing import Deque, Optional

import httpx

from config import Config
from models import AttemptState, ProviderConfig, ProviderResult, PronunciationResult
from services.feedback_generator import FeedbackGenerator
from services.pronunciation import PronunciationScorer
from services.transcription import TranscriptionService


class AttemptInProgress(Exception):
    """Raised when an attempt starts while another one is still running."""


class SessionClosed(Exception):
    """Raised when a closed session is used."""


def evaluate_attempt(
    target_word: str,
    provider_result: ProviderResult,
    provider: str,
    scorer: Optional[PronunciationScorer] = None,
    feedback_generator: Optional[FeedbackGenerator] = None,
    learner_facing_score: Optional[str] = None,
) -> PronunciationResult:
    """Score a transcript and build the feedback for it."""
    scorer = scorer or PronunciationScorer()
    feedback_generator = feedback_generator or FeedbackGenerator()
    learner_facing_score = learner_facing_score or Config.LEARNER_FACING_SCORE

    breakdown = scorer.score(target_word, provider_result)
    if learner_facing_score == "boosted":
        shown_score = breakdown.boosted_accuracy
    else:
        shown_score = breakdown.raw_accuracy

    analysis = feedback_generator.generate_analysis(
        target_word, provider_result.transcript, shown_score, provider_result
    )
    return PronunciationResult(
        target_word=target_word,
        transcript=provider_result.transcript,
        raw_accuracy=breakdown.raw_accuracy,
        boosted_accuracy=breakdown.boosted_accuracy,
        passed=shown_score >= Config.PASS_THRESHOLD,
        analysis=analysis,
        feedback_message=feedback_generator.generate_feedback(shown_score, provider_result.transcript),
        alternatives=provider_result.alternatives[:Config.MAX_ALTERNATIVES],
        provider=provider,
        breakdown=breakdown,
    )


def score_transcript(
    target_word: str, transcript: str, confidence: Optional[float] = None
) -> PronunciationResult:
    """Score a transcript produced outside the service, e.g. by browser speech recognition."""
    return evaluate_attempt(
        target_word,
        ProviderResult(transcript=transcript, confidence=confidence),
        provider="transcript",
    )


class PracticeSession:
    def __init__(
        self,
        config: Optional[ProviderConfig] = None,
        rng: Optional[random.Random] = None,
        client: Optional[httpx.AsyncClient] = None,
        learner_facing_score: Optional[str] = None,
    ):
        self.config = config or Config.provider_config()
        self._owns_client = client is None and self.config.is_configured
        if self._owns_client:
            client = httpx.AsyncClient(timeout=self.config.timeout_sec)
        self.client = client

        self.transcription_service = TranscriptionService(self.config, rng=rng, client=client)
        self.scorer = PronunciationScorer()
        self.feedback_generator = FeedbackGenerator()
        self.learner_facing_score = learner_facing_score or Config.LEARNER_FACING_SCORE

        self.state = AttemptState.IDLE
        self.history: Deque[PronunciationResult] = deque(maxlen=Config.MAX_HISTORY)
        self.last_failure: Optional[str] = None
        self.closed = False
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def transcribe_and_score(self, target_word: str, audio: Optional[bytes] = None) -> PronunciationResult:
        """Run one attempt: transcribe (or simulate), score, and build feedback."""
        if self.closed:
            raise SessionClosed("Practice session is closed")
        if self._in_flight:
            raise AttemptInProgress("An attempt is already being scored. Please wait for it to complete.")

        request_id = str(uuid.uuid4())[:8]
        self._in_flight = True
        self.state = AttemptState.REQUESTING
        try:
            logging.info(f"[{request_id}] Scoring attempt for '{target_word}'")
            outcome = await self.transcription_service.transcribe_with_fallback(audio, target_word)
            self.state = outcome.state
            self.last_failure = outcome.failure_reason

            result = evaluate_attempt(
                target_word,
                outcome.result,
                outcome.provider,
                scorer=self.scorer,
                feedback_generator=self.feedback_generator,
                learner_facing_score=self.learner_facing_score,
            )
            self.history.append(result)
            logging.info(
                f"[{request_id}] '{target_word}' via {outcome.provider}: "
                f"raw={result.raw_accuracy} boosted={result.boosted_accuracy}"
            )
            return result
        except Exception:
            self.state = AttemptState.FAILED
            raise
        finally:
            self._in_flight = False

    def reset(self):
        """Forget previous attempts and return to idle."""
        if self._in_flight:
            raise AttemptInProgress("Cannot reset while an attempt is being scored")
        self.history.clear()
        self.last_failure = None
        self.state = AttemptState.IDLE

    async def close(self):
        if self.closed:
            return
        self.closed = True
        if self._owns_client and self.client is not None:
            await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()


class SessionRegistry:
    """Practice sessions keyed by learner id, least recently used evicted first."""

    def __init__(self, config: Optional[ProviderConfig] = None, max_sessions: Optional[int] = None):
        self.config = config or Config.provider_config()
        self.max_sessions = max_sessions or Config.MAX_SESSIONS
        self._sessions: "OrderedDict[str, PracticeSession]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, learner_id: str) -> bool:
        return learner_id in self._sessions

    async def get(self, learner_id: str) -> PracticeSession:
        session = self._sessions.get(learner_id)
        if session is None or session.closed:
            session = PracticeSession(self.config)
            self._sessions[learner_id] = session
        self._sessions.move_to_end(learner_id)
        await self._evict(keep=learner_id)
        return session

    async def _evict(self, keep: str):
        # Sessions scoring an attempt are skipped and may leave the registry briefly over the limit
        for learner_id in list(self._sessions):
            if len(self._sessions) <= self.max_sessions:
                break
            session = self._sessions[learner_id]
            if learner_id == keep or session.in_flight:
                continue
            del self._sessions[learner_id]
            logging.info(f"Evicting idle practice session for learner {learner_id}")
            await session.close()

    def reset(self, learner_id: str) -> bool:
        session = self._sessions.get(learner_id)
        if session is None:
            return False
        session.reset()
        return True

    async def close_all(self):
        for session in self._sessions.values():
            await session.close()
        self._sessions.clear()
