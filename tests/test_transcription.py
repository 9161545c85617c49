import asyncio
import base64
import json
import random

import httpx
import pytest

from models import AttemptState, ProviderConfig
from services.transcription import (
    ProviderError,
    ProviderUnavailable,
    SeedAsrProvider,
    TranscriptionService,
    TranscriptSimulator,
    normalize_provider_response,
)

CONFIGURED = ProviderConfig(
    api_key="key",
    endpoint="https://asr.example.com/",
    app_id="app",
    token="token",
    timeout_sec=2.0,
)

SEED_ASR_RESPONSE = {
    "code": 1000,
    "message": "Success",
    "result": [
        {
            "text": "banana",
            "confidence": 0.93,
            "utterances": [
                {
                    "text": "banana",
                    "start_time": 120,
                    "end_time": 880,
                    "words": [{"text": "banana", "start_time": 120, "end_time": 880, "confidence": 0.91}],
                }
            ],
        },
        {"text": "bandana", "confidence": 0.4},
        {"text": "banner", "confidence": 0.2},
    ],
}


def mock_client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_normalize_seed_asr_response():
    result = normalize_provider_response(SEED_ASR_RESPONSE)
    assert result.transcript == "banana"
    assert result.confidence == pytest.approx(0.93)
    assert result.alternatives == ["bandana", "banner"]
    assert result.words[0].start_time == pytest.approx(0.12)
    assert result.words[0].end_time == pytest.approx(0.88)
    assert result.words[0].confidence == pytest.approx(0.91)


def test_normalize_empty_seed_asr_result():
    result = normalize_provider_response({"code": 1000, "result": []})
    assert result.transcript == ""
    assert result.confidence is None
    assert result.words is None


def test_normalize_assemblyai_style_response():
    result = normalize_provider_response({
        "text": "Water.",
        "words": [{"text": "Water.", "start": 500, "end": 1200, "confidence": 0.8}],
    })
    assert result.transcript == "Water."
    assert result.confidence is None
    assert result.words[0].start_time == pytest.approx(0.5)


def test_normalize_generic_response_clamps_confidence():
    result = normalize_provider_response({
        "transcript": "cat",
        "confidence": 1.4,
        "words": [{"word": "cat", "confidence": 0.7, "startTime": 0.1, "endTime": 0.4}],
        "alternatives": ["cut", "cot", "kit", "cap"],
    })
    assert result.confidence == 1.0
    assert result.words[0].end_time == pytest.approx(0.4)
    assert result.alternatives == ["cut", "cot", "kit"]


def test_unconfigured_provider_is_unavailable():
    provider = SeedAsrProvider(ProviderConfig())
    with pytest.raises(ProviderUnavailable):
        asyncio.run(provider.transcribe(b"audio", "banana"))


def test_missing_audio_is_unavailable():
    provider = SeedAsrProvider(CONFIGURED)
    with pytest.raises(ProviderUnavailable):
        asyncio.run(provider.transcribe(None, "banana"))


def test_provider_sends_audio_and_target_hint():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=SEED_ASR_RESPONSE)

    async def run():
        async with mock_client(handler) as client:
            return await SeedAsrProvider(CONFIGURED, client=client).transcribe(b"audio", "banana")

    result = asyncio.run(run())
    assert result.transcript == "banana"
    assert seen["url"] == "https://asr.example.com/api/v1/asr"
    assert seen["auth"] == "Bearer key"
    assert seen["body"]["request"]["hotwords"] == ["banana"]
    assert seen["body"]["app"]["appid"] == "app"
    assert base64.b64decode(seen["body"]["data"]) == b"audio"


@pytest.mark.parametrize("response,status", [
    (httpx.Response(500, text="boom"), 500),
    (httpx.Response(401, text="denied"), 401),
    (httpx.Response(200, json={"code": 1013, "message": "silence"}), 1013),
])
def test_provider_errors_carry_status(response, status):
    async def run():
        async with mock_client(lambda request: response) as client:
            await SeedAsrProvider(CONFIGURED, client=client).transcribe(b"audio", "banana")

    with pytest.raises(ProviderError) as excinfo:
        asyncio.run(run())
    assert excinfo.value.status == status


def test_simulator_uses_injected_random_source():
    result = TranscriptSimulator(random.Random(7)).simulate("banana")
    assert result.transcript
    assert result.transcript not in result.alternatives
    assert len(result.alternatives) <= 3
    assert result.confidence is None


def test_fallback_when_not_configured():
    service = TranscriptionService(ProviderConfig(), rng=random.Random(1))
    outcome = asyncio.run(service.transcribe_with_fallback(b"audio", "banana"))
    assert outcome.state == AttemptState.SIMULATED
    assert outcome.provider == "fallback"
    assert "not configured" in outcome.failure_reason


def test_fallback_on_backend_error():
    async def run():
        async with mock_client(lambda request: httpx.Response(503, text="down")) as client:
            service = TranscriptionService(CONFIGURED, rng=random.Random(1), client=client)
            return await service.transcribe_with_fallback(b"audio", "banana")

    outcome = asyncio.run(run())
    assert outcome.state == AttemptState.SIMULATED
    assert "503" in outcome.failure_reason


@pytest.mark.parametrize("payload", [
    [],
    {"result": ["banana"]},
    {"result": [{"text": "banana", "utterances": [{"words": [{"text": "banana", "start_time": None}]}]}]},
    {"text": "banana", "words": [{"start": 0}]},
])
def test_malformed_payload_falls_back_to_simulation(payload):
    async def run():
        async with mock_client(lambda request: httpx.Response(200, json=payload)) as client:
            service = TranscriptionService(CONFIGURED, rng=random.Random(1), client=client)
            return await service.transcribe_with_fallback(b"audio", "banana")

    outcome = asyncio.run(run())
    assert outcome.state == AttemptState.SIMULATED
    assert outcome.provider == "fallback"
    assert "Malformed response" in outcome.failure_reason



def test_fallback_on_network_timeout():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    async def run():
        async with mock_client(handler) as client:
            service = TranscriptionService(CONFIGURED, rng=random.Random(1), client=client)
            return await service.transcribe_with_fallback(b"audio", "banana")

    outcome = asyncio.run(run())
    assert outcome.state == AttemptState.SIMULATED


def test_fallback_when_provider_is_too_slow():
    async def handler(request):
        await asyncio.sleep(1)
        return httpx.Response(200, json=SEED_ASR_RESPONSE)

    config = CONFIGURED.model_copy(update={"timeout_sec": 0.05})

    async def run():
        async with mock_client(handler) as client:
            service = TranscriptionService(config, rng=random.Random(1), client=client)
            return await service.transcribe_with_fallback(b"audio", "banana")

    outcome = asyncio.run(run())
    assert outcome.state == AttemptState.SIMULATED
    assert "No response within" in outcome.failure_reason


def test_successful_transcription():
    async def run():
        async with mock_client(lambda request: httpx.Response(200, json=SEED_ASR_RESPONSE)) as client:
            service = TranscriptionService(CONFIGURED, client=client)
            return await service.transcribe_with_fallback(b"audio", "banana")

    outcome = asyncio.run(run())
    assert outcome.state == AttemptState.SUCCEEDED
    assert outcome.provider == "seed-asr"
    assert outcome.result.confidence == pytest.approx(0.93)
