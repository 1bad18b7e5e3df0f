import pytest
from app.config import settings
from app.services.ai_content import content_generator


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    monkeypatch.setattr(settings, "GEMINI_API_KEY", None)
    monkeypatch.setattr(settings, "RESEND_API_KEY", None)
    monkeypatch.setattr(settings, "ENVIRONMENT", "test")
    monkeypatch.setattr(settings, "DOSSIER_GENERATE_PDF", False)
    content_generator.clear()
    yield
    content_generator.clear()


@pytest.fixture
def form_data():
    return {
        "agentEmail": "agent@example.com",
        "propertyType": "appartement",
        "address": "Rue du Lac 12, 1003 Lausanne",
        "price": "665000",
        "targetBuyer": "jeune_famille",
    }
