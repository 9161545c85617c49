import asyncio
import base64
import httpx
import logging
import random
import time
from typing import Any, Dict, List, Optional
from pydantic import ValidationError
from config import Config
from models import AttemptState, ProviderConfig, ProviderResult, TranscriptionOutcome, WordTiming
from services.phonetics import simulate_transcripts


class ProviderUnavailable(Exception):
    """Raised when no speech-to-text backend is configured for the attempt."""


class ProviderError(Exception):
    """Raised when the speech-to-text backend rejects or fails a request."""

    def __init__(self, status: Optional[int], message: str):
        super().__init__(f"{status} - {message}" if status is not None else message)
        self.status = status
        self.message = message


SEED_ASR_SUCCESS_CODE = 1000


def _confidence(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return max(0.0, min(1.0, float(value)))


def _parse_seed_asr(result: Dict[str, Any]) -> ProviderResult:
    """Seed-ASR returns an n-best list; the first entry is the best guess."""
    candidates = result.get("result") or []
    if not candidates:
        return ProviderResult(transcript="")

    best = candidates[0]
    words = []
    for utterance in best.get("utterances") or []:
        for word_data in utterance.get("words") or []:
            words.append(WordTiming(
                word=word_data.get("text", ""),
                confidence=_confidence(word_data.get("confidence")),
                start_time=word_data.get("start_time", 0) / 1000.0,
                end_time=word_data.get("end_time", 0) / 1000.0,
            ))

    alternatives = [
        candidate.get("text") or candidate.get("transcript") or ""
        for candidate in candidates[1:]
    ]
    return ProviderResult(
        transcript=best.get("text") or best.get("transcript") or "",
        confidence=_confidence(best.get("confidence")),
        words=words or None,
        alternatives=[alt for alt in alternatives if alt][:Config.MAX_ALTERNATIVES],
    )


def _parse_assemblyai(result: Dict[str, Any]) -> ProviderResult:
    words = []
    for word_data in result.get("words") or []:
        words.append(WordTiming(
            word=word_data["text"],
            confidence=_confidence(word_data.get("confidence")),
            start_time=word_data.get("start", 0) / 1000.0,  # Convert to seconds
            end_time=word_data.get("end", 0) / 1000.0,
        ))
    return ProviderResult(
        transcript=result.get("text") or "",
        confidence=_confidence(result.get("confidence")),
        words=words or None,
    )


def _parse_generic(result: Dict[str, Any]) -> ProviderResult:
    words = [
        WordTiming(
            word=word_data.get("word", ""),
            confidence=_confidence(word_data.get("confidence")),
            start_time=word_data.get("start_time", word_data.get("startTime", 0.0)),
            end_time=word_data.get("end_time", word_data.get("endTime", 0.0)),
        )
        for word_data in result.get("words") or []
    ]
    return ProviderResult(
        transcript=result.get("transcript") or "",
        confidence=_confidence(result.get("confidence")),
        words=words or None,
        alternatives=list(result.get("alternatives") or [])[:Config.MAX_ALTERNATIVES],
    )


def normalize_provider_response(result: Dict[str, Any]) -> ProviderResult:
    """Map any supported provider payload onto a ProviderResult."""
    if isinstance(result.get("result"), list):
        return _parse_seed_asr(result)
    if "text" in result:
        return _parse_assemblyai(result)
    return _parse_generic(result)


class SeedAsrProvider:
    name = "seed-asr"

    def __init__(self, config: ProviderConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self.client = client

    def build_payload(self, audio: bytes, target_word: str) -> Dict[str, Any]:
        return {
            "app": {
                "appid": self.config.app_id,
                "token": self.config.token,
                "cluster": self.config.cluster,
            },
            "user": {"uid": "pronunciation_practice_user"},
            "audio": {
                "format": "wav",
                "rate": 16000,
                "channel": 1,
                "bits": 16,
                "language": self.config.language,
            },
            "request": {
                "reqid": f"req_{int(time.time() * 1000)}",
                "nbest": Config.MAX_ALTERNATIVES,
                "word_info": 1,
                "show_utterances": True,
                "sequence": 1,
                "hotwords": [target_word],
            },
            "data": base64.b64encode(audio).decode("ascii"),
        }

    async def transcribe(self, audio: Optional[bytes], target_word: str) -> ProviderResult:
        """Send one recognition request; no retries."""
        if not self.config.is_configured:
            raise ProviderUnavailable("Seed-ASR credentials not configured")
        if not audio:
            raise ProviderUnavailable("No audio supplied for transcription")

        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }
        url = f"{self.config.endpoint.rstrip('/')}/api/v1/asr"
        payload = self.build_payload(audio, target_word)

        try:
            if self.client is not None:
                response = await self.client.post(url, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self.config.timeout_sec) as client:
                    response = await client.post(url, json=payload, headers=headers)
        except httpx.TimeoutException:
            raise ProviderError(None, "Timeout waiting for Seed-ASR")
        except httpx.HTTPError as e:
            raise ProviderError(None, f"Network error: {str(e)}")

        if response.status_code == 401:
            raise ProviderError(401, "Invalid Seed-ASR credentials")
        elif response.status_code == 429:
            raise ProviderError(429, "Rate limit exceeded")
        elif response.status_code != 200:
            error_text = response.text if response.content else "Unknown error"
            raise ProviderError(response.status_code, error_text)

        try:
            result = response.json()
        except ValueError:
            raise ProviderError(response.status_code, "Malformed JSON from Seed-ASR")

        if not isinstance(result, dict):
            raise ProviderError(response.status_code, "Malformed response: expected a JSON object")

        code = result.get("code", SEED_ASR_SUCCESS_CODE)
        if code != SEED_ASR_SUCCESS_CODE:
            raise ProviderError(code, result.get("message", "Recognition failed"))

        try:
            return normalize_provider_response(result)
        except (AttributeError, KeyError, TypeError, ValueError, ValidationError) as e:
            logging.warning(f"Unexpected Seed-ASR payload: {str(e)}")
            raise ProviderError(response.status_code, f"Malformed response: {str(e)}")


class TranscriptSimulator:
    """Stands in for a provider by picking a plausible transcript at random."""

    name = "fallback"

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def simulate(self, target_word: str) -> ProviderResult:
        candidates = simulate_transcripts(target_word, self.rng)
        transcript = self.rng.choice(candidates)

        alternatives: List[str] = []
        for candidate in candidates:
            if candidate != transcript and candidate not in alternatives:
                alternatives.append(candidate)
        return ProviderResult(
            transcript=transcript,
            alternatives=alternatives[:Config.MAX_ALTERNATIVES],
        )


class TranscriptionService:
    def __init__(
        self,
        config: Optional[ProviderConfig] = None,
        rng: Optional[random.Random] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config or Config.provider_config()
        self.provider = SeedAsrProvider(self.config, client=client)
        self.simulator = TranscriptSimulator(rng)

    async def transcribe(self, audio: Optional[bytes], target_word: str) -> ProviderResult:
        """Call the provider with a bounded wait, raising on any failure."""
        try:
            return await asyncio.wait_for(
                self.provider.transcribe(audio, target_word),
                timeout=self.config.timeout_sec,
            )
        except asyncio.TimeoutError:
            raise ProviderError(None, f"No response within {self.config.timeout_sec}s")

    async def transcribe_with_fallback(self, audio: Optional[bytes], target_word: str) -> TranscriptionOutcome:
        """Transcribe through the provider, simulating a transcript when it is unavailable or fails."""
        try:
            result = await self.transcribe(audio, target_word)
            logging.info(f"Seed-ASR transcript for '{target_word}': '{result.transcript}'")
            return TranscriptionOutcome(
                result=result,
                state=AttemptState.SUCCEEDED,
                provider=self.provider.name,
            )
        except ProviderUnavailable as e:
            logging.info(f"Provider unavailable ({str(e)}), simulating transcript")
            reason = str(e)
        except ProviderError as e:
            logging.warning(f"Provider error, falling back to simulation: {str(e)}")
            reason = str(e)

        return TranscriptionOutcome(
            result=self.simulator.simulate(target_word),
            state=AttemptState.SIMULATED,
            provider=self.simulator.name,
            failure_reason=reason,
        )
