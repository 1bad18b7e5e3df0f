import json

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from app.main import app
from app.config import settings
from app.constants import TargetBuyer
from app.schemas.content import GeneratedCopy
from app.schemas.dossier import PropertySubmission
from app.services.ai_content import (
    ContentGenerator,
    InvalidAIResponse,
    RateLimitExceeded,
    build_prompt,
    cache_key,
    content_generator,
    generate_fallback_content,
    parse_ai_response,
    passes_content_checks,
)
from app.services.content_store import RateLimiter
from app.services.retry import is_retryable_error
from unittest.mock import AsyncMock

MODEL_ANSWER = json.dumps({
    "narrative": "Découvrez cet appartement lumineux avec une vue sur le lac, idéal pour une jeune famille.",
    "facebook": "🏡 Nouveau à Lausanne ! Un appartement pour la famille. Contactez-nous !",
    "instagram": "Vue sur le lac et la lumière du matin #immobilier #Lausanne",
    "linkedin": "Opportunité à Lausanne : appartement de 4 pièces avec une vue sur le lac.",
})


def _submission(**overrides):
    data = {
        "agentEmail": "agent@example.com",
        "propertyType": "appartement",
        "address": "Rue du Lac 12, 1003 Lausanne",
        "price": "665000",
        "targetBuyer": "jeune_famille",
        "roomCount": 4,
        "livingArea": 95,
    }
    data.update(overrides)
    return PropertySubmission.model_validate(data)


def _generator(**kwargs):
    kwargs.setdefault("retry_base_delay", 0)
    return ContentGenerator(**kwargs)


def test_prompt_is_steered_by_persona():
    prompt = build_prompt(_submission(targetBuyer="investisseur"))
    assert "investisseur immobilier recherchant rentabilité" in prompt
    assert "potentiel locatif" in prompt
    assert "Rue du Lac 12, 1003 Lausanne" in prompt
    assert "665'000 CHF" in prompt
    assert "Surface habitable: 95 m²" in prompt
    assert "#Lausanne" in prompt


@pytest.mark.parametrize("persona", list(TargetBuyer))
def test_every_persona_has_a_prompt(persona):
    assert "Tu es un agent immobilier" in build_prompt(_submission(targetBuyer=persona.value))


def test_parse_response_extracts_json_block():
    copy = parse_ai_response(f"Voici le contenu:\n```json\n{MODEL_ANSWER}\n```")
    assert copy.narrative.startswith("Découvrez")
    assert copy.linkedin.startswith("Opportunité")


@pytest.mark.parametrize("text", [
    "pas de json ici",
    '{"narrative": "x", "facebook": "y"}',
    '{"narrative": "", "facebook": "y", "instagram": "z", "linkedin": "w"}',
    "{not json}",
])
def test_parse_response_rejects_malformed_answers(text):
    with pytest.raises(InvalidAIResponse):
        parse_ai_response(text)


def test_cache_key_normalises_address():
    a = cache_key(_submission(address="Rue du Lac 12,  1003 Lausanne"))
    b = cache_key(_submission(address="rue du lac 12, 1003 LAUSANNE"))
    assert a == b
    assert a != cache_key(_submission(targetBuyer="retraite"))
    assert a != cache_key(_submission(price="700000"))


def test_fallback_content_mentions_property():
    copy = generate_fallback_content(_submission())
    assert "Lausanne" in copy.narrative
    assert "665'000 CHF" in copy.narrative
    assert "#Lausanne" in copy.instagram
    assert passes_content_checks(copy)


def test_content_checks():
    french = GeneratedCopy.model_validate_json(MODEL_ANSWER)
    assert passes_content_checks(french)
    assert not passes_content_checks(french.model_copy(update={"facebook": "Quelle merde de vue"}))
    english = GeneratedCopy(
        narrative="A bright flat with lake views.",
        facebook="New listing!",
        instagram="#realestate",
        linkedin="Contact me.",
    )
    assert not passes_content_checks(english)


@pytest.mark.parametrize("error,expected", [
    (httpx.ConnectError("refused"), True),
    (TimeoutError(), True),
    (type("ApiErr", (Exception,), {"code": 429})("throttled"), True),
    (type("ApiErr", (Exception,), {"code": 503})("unavailable"), True),
    (type("ApiErr", (Exception,), {"code": 400})("bad request"), False),
    (Exception("Rate limit reached"), True),
    (InvalidAIResponse("No JSON found in response"), False),
])
def test_retryable_errors(error, expected):
    assert is_retryable_error(error) is expected


@pytest.mark.asyncio
async def test_generate_caches_model_content(monkeypatch):
    monkeypatch.setattr(settings, "GEMINI_API_KEY", "test-key")
    generator = _generator()
    call_model = AsyncMock(return_value=MODEL_ANSWER)
    monkeypatch.setattr(generator, "_call_model", call_model)

    first = await generator.generate(_submission(), "1.2.3.4")
    assert first.fallback is False
    assert first.cached is False
    assert first.social_media.instagram.endswith("#Lausanne")
    assert first.rate_limit.remaining == 9

    second = await generator.generate(_submission(), "1.2.3.4")
    assert second.cached is True
    assert second.generation_time == 0
    assert second.narrative == first.narrative
    assert second.rate_limit.remaining == 8
    call_model.assert_awaited_once()


@pytest.mark.asyncio
async def test_generate_retries_transient_errors(monkeypatch):
    monkeypatch.setattr(settings, "GEMINI_API_KEY", "test-key")
    generator = _generator(max_retries=2)
    call_model = AsyncMock(side_effect=[ConnectionError("reset"), TimeoutError(), MODEL_ANSWER])
    monkeypatch.setattr(generator, "_call_model", call_model)

    content = await generator.generate(_submission())
    assert content.fallback is False
    assert call_model.await_count == 3


@pytest.mark.asyncio
async def test_generate_falls_back_after_retries(monkeypatch):
    monkeypatch.setattr(settings, "GEMINI_API_KEY", "test-key")
    generator = _generator(max_retries=2)
    call_model = AsyncMock(side_effect=ConnectionError("reset"))
    monkeypatch.setattr(generator, "_call_model", call_model)

    content = await generator.generate(_submission())
    assert content.fallback is True
    assert "Lausanne" in content.narrative
    assert call_model.await_count == 3


@pytest.mark.asyncio
async def test_malformed_answer_is_not_retried(monkeypatch):
    monkeypatch.setattr(settings, "GEMINI_API_KEY", "test-key")
    generator = _generator()
    call_model = AsyncMock(side_effect=InvalidAIResponse("Empty response from AI"))
    monkeypatch.setattr(generator, "_call_model", call_model)

    content = await generator.generate(_submission())
    assert content.fallback is True
    call_model.assert_awaited_once()


@pytest.mark.asyncio
async def test_fallback_content_is_not_cached(monkeypatch):
    monkeypatch.setattr(settings, "GEMINI_API_KEY", "test-key")
    generator = _generator()
    profane = json.loads(MODEL_ANSWER)
    profane["narrative"] = "Un appartement de merde avec une vue."
    call_model = AsyncMock(side_effect=[json.dumps(profane), MODEL_ANSWER])
    monkeypatch.setattr(generator, "_call_model", call_model)

    first = await generator.generate(_submission())
    assert first.fallback is True
    second = await generator.generate(_submission())
    assert second.fallback is False
    assert second.cached is False
    assert len(generator.cache) == 1


@pytest.mark.asyncio
async def test_generate_without_api_key_uses_fallback():
    content = await _generator().generate(_submission())
    assert content.fallback is True


@pytest.mark.asyncio
async def test_rate_limit_checked_before_cache(monkeypatch):
    monkeypatch.setattr(settings, "GEMINI_API_KEY", "test-key")
    generator = _generator(rate_limiter=RateLimiter(max_requests=2, window_seconds=3600))
    monkeypatch.setattr(generator, "_call_model", AsyncMock(return_value=MODEL_ANSWER))

    await generator.generate(_submission(), "1.2.3.4")
    await generator.generate(_submission(), "1.2.3.4")
    with pytest.raises(RateLimitExceeded) as exc_info:
        await generator.generate(_submission(), "1.2.3.4")
    assert exc_info.value.retry_after > 0

    other = await generator.generate(_submission(), "5.6.7.8")
    assert other.cached is True


@pytest.mark.asyncio
async def test_content_endpoint(monkeypatch):
    monkeypatch.setattr(settings, "GEMINI_API_KEY", "test-key")
    monkeypatch.setattr(content_generator, "_call_model", AsyncMock(return_value=MODEL_ANSWER))
    payload = {
        "agentEmail": "agent@example.com",
        "propertyType": "apartment",
        "address": "Rue du Lac 12, 1003 Lausanne",
        "price": 665000,
        "targetBuyer": "professionnel",
    }
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post("/api/content", json=payload)
    assert response.status_code == 200
    body = response.json()
    assert body["socialMedia"]["linkedin"].startswith("Opportunité")
    assert body["fallback"] is False
    assert body["rateLimit"]["remaining"] == 9


@pytest.mark.asyncio
async def test_content_endpoint_rejects_invalid_body():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post("/api/content", json={"agentEmail": "agent@example.com"})
    assert response.status_code == 400
    assert response.json()["error"] == "Données invalides"
    assert "address" in response.json()["fields"]


@pytest.mark.asyncio
async def test_content_endpoint_rate_limit(monkeypatch):
    monkeypatch.setattr(settings, "GEMINI_API_KEY", "test-key")
    monkeypatch.setattr(content_generator, "rate_limiter", RateLimiter(max_requests=1, window_seconds=3600))
    monkeypatch.setattr(content_generator, "_call_model", AsyncMock(return_value=MODEL_ANSWER))
    payload = {
        "agentEmail": "agent@example.com",
        "propertyType": "maison",
        "address": "Chemin des Vignes 3, 1096 Cully",
        "price": "1250000",
        "targetBuyer": "retraite",
    }
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        assert (await client.post("/api/content", json=payload)).status_code == 200
        response = await client.post("/api/content", json=payload)
    assert response.status_code == 429
    assert int(response.headers["retry-after"]) > 0


@pytest.mark.parametrize("price,expected", [
    (665000.5, "665000.5"),
    (1250000.0, "1250000"),
    (1250000, "1250000"),
    (99.99, "99.99"),
])
def test_numeric_price_keeps_every_digit(price, expected):
    assert _submission(price=price).price == expected


@pytest.mark.asyncio
async def test_content_endpoint_accepts_float_price(monkeypatch):
    monkeypatch.setattr(settings, "GEMINI_API_KEY", "test-key")
    monkeypatch.setattr(content_generator, "_call_model", AsyncMock(return_value=MODEL_ANSWER))
    payload = {
        "agentEmail": "agent@example.com",
        "propertyType": "maison",
        "address": "Chemin des Vignes 3, 1096 Cully",
        "price": 1250000.0,
        "targetBuyer": "retraite",
    }
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post("/api/content", json=payload)
    assert response.status_code == 200
    assert response.json()["fallback"] is False
