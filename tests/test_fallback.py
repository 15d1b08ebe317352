from __future__ import annotations

import random

import pytest

from wava.core.errors import ErrorKind, GenerationAbortedError, ModelQueueExhaustedError
from wava.core.types import GenerationOptions, GenerationRequest
from wava.gemini.client import GeminiAPIError
from wava.gemini.fallback import FallbackGenerator, RetryPolicy
from wava.gemini.recovery import recover_json_object


class ScriptedBackend:
    """Replays a per-model script of results; exceptions are raised, strings returned."""

    def __init__(self, scripts):
        self.scripts = {model: list(steps) for model, steps in scripts.items()}
        self.calls: list[str] = []

    async def generate_content(self, model, request, config, response_mime_type=None):
        self.calls.append(model)
        steps = self.scripts[model]
        step = steps.pop(0) if len(steps) > 1 else steps[0]
        if isinstance(step, Exception):
            raise step
        return step


def server_error() -> GeminiAPIError:
    return GeminiAPIError("[503 UNAVAILABLE] The model is overloaded", status_code=503)


def quota_error(hint: str = "") -> GeminiAPIError:
    return GeminiAPIError(f"[429 RESOURCE_EXHAUSTED] rate limit{hint}", status_code=429)


@pytest.fixture()
def request_x() -> GenerationRequest:
    return GenerationRequest.from_text("x")


def make_generator(backend, queue, recording_sleep, retries=2):
    return FallbackGenerator(
        backend,
        model_queue=queue,
        policy=RetryPolicy(max_retries_per_model=retries),
        sleep=recording_sleep,
        rng=random.Random(0),
    )


@pytest.mark.asyncio
async def test_falls_back_in_order_and_stops_at_first_success(request_x, recording_sleep):
    backend = ScriptedBackend({"A": [server_error()], "B": [server_error()], "C": ["done"], "D": ["unused"]})
    generator = make_generator(backend, ["A", "B", "C", "D"], recording_sleep)

    result = await generator.generate(request_x)

    assert result == "done"
    assert backend.calls == ["A", "A", "A", "B", "B", "B", "C"]
    assert "D" not in backend.calls


@pytest.mark.asyncio
async def test_auth_error_aborts_after_one_call(request_x, recording_sleep):
    backend = ScriptedBackend(
        {"A": [GeminiAPIError("[400 INVALID_ARGUMENT] API key not valid", status_code=400)], "B": ["ok"]}
    )
    generator = make_generator(backend, ["A", "B"], recording_sleep)

    with pytest.raises(GenerationAbortedError) as exc_info:
        await generator.generate(request_x)

    assert backend.calls == ["A"]
    assert exc_info.value.kind is ErrorKind.AUTH
    assert exc_info.value.status_code == 401
    assert exc_info.value.model == "A"
    assert recording_sleep.calls == []


@pytest.mark.asyncio
async def test_malformed_request_aborts_without_fallback(request_x, recording_sleep):
    backend = ScriptedBackend(
        {
            "A": [GeminiAPIError('[400 INVALID_ARGUMENT] Invalid JSON payload received.', status_code=400)],
            "B": ["ok"],
        }
    )
    generator = make_generator(backend, ["A", "B"], recording_sleep)

    with pytest.raises(GenerationAbortedError) as exc_info:
        await generator.generate(request_x)

    assert backend.calls == ["A"]
    assert exc_info.value.kind is ErrorKind.MALFORMED_REQUEST
    assert exc_info.value.status_code == 400


@pytest.mark.parametrize("retries", [0, 1, 2, 4])
@pytest.mark.asyncio
async def test_quota_error_is_retried_up_to_the_cap(request_x, recording_sleep, retries):
    backend = ScriptedBackend({"A": [quota_error()], "B": ["ok"]})
    generator = make_generator(backend, ["A", "B"], recording_sleep, retries=retries)

    result = await generator.generate(request_x)

    assert result == "ok"
    assert backend.calls.count("A") == retries + 1
    assert backend.calls[-1] == "B"
    assert len(recording_sleep.calls) == retries


@pytest.mark.asyncio
async def test_not_found_moves_on_without_retrying(request_x, recording_sleep):
    backend = ScriptedBackend(
        {"A": [GeminiAPIError("[404 NOT_FOUND] models/A is not found", status_code=404)], "B": ["ok"]}
    )
    generator = make_generator(backend, ["A", "B"], recording_sleep)

    assert await generator.generate(request_x) == "ok"
    assert backend.calls == ["A", "B"]
    assert recording_sleep.calls == []


@pytest.mark.asyncio
async def test_exhaustion_reports_every_attempted_model(request_x, recording_sleep):
    backend = ScriptedBackend({"A": [server_error()], "B": [quota_error()], "C": [server_error()]})
    generator = make_generator(backend, ["A", "B", "C"], recording_sleep)

    with pytest.raises(ModelQueueExhaustedError) as exc_info:
        await generator.generate(request_x)

    error = exc_info.value
    assert error.attempted_models == ("A", "B", "C")
    assert error.kind is ErrorKind.SERVER
    assert error.status_code == 503
    assert isinstance(error.last_error, GeminiAPIError)
    assert len(backend.calls) == 9


@pytest.mark.asyncio
async def test_backoff_waits_grow_between_retries(request_x, recording_sleep):
    backend = ScriptedBackend({"A": [server_error()], "B": ["ok"]})
    generator = make_generator(backend, ["A", "B"], recording_sleep)

    await generator.generate(request_x)

    first, second = recording_sleep.calls
    assert 0.6 <= first < 0.85
    assert 1.2 <= second < 1.45


@pytest.mark.asyncio
async def test_queue_override_replaces_default_queue(request_x, recording_sleep):
    backend = ScriptedBackend({"A": ["from A"], "Z": ["from Z"]})
    generator = make_generator(backend, ["A"], recording_sleep)

    result = await generator.generate(request_x, GenerationOptions(model_queue_override=("Z",)))

    assert result == "from Z"
    assert backend.calls == ["Z"]


@pytest.mark.asyncio
async def test_rate_limited_model_honours_server_hint_then_falls_back(recording_sleep):
    request = GenerationRequest.from_text("x")
    backend = ScriptedBackend(
        {
            "m1": [quota_error(", retry after 2s")],
            "m2": ['{"prompt":"ok generated prompt text"}'],
        }
    )
    generator = make_generator(backend, ["m1", "m2"], recording_sleep)

    text = await generator.generate(request)

    assert backend.calls == ["m1", "m1", "m1", "m2"]
    assert recording_sleep.calls == [2.0, 2.0]
    assert recover_json_object(text, ("prompt",)) == {"prompt": "ok generated prompt text"}


def test_default_queue_comes_from_settings(monkeypatch):
    from wava.core.config import get_settings

    monkeypatch.setenv("GEMINI_MODEL_QUEUE", '["m-fast", "m-slow"]')
    get_settings.cache_clear()

    generator = FallbackGenerator(ScriptedBackend({}))

    assert generator.model_queue == ("m-fast", "m-slow")
    assert generator.policy.max_retries_per_model == 2
