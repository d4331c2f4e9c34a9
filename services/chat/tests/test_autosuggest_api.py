"""
Tests for the autosuggest endpoints.

Typed-text suggestions use the mock dataset; starter suggestions go through
the fake LLM, whose echo response is not JSON, so the fallback list is used.
"""

from services.chat.autosuggest import FALLBACK_STARTER_SUGGESTIONS
from services.chat.main import app
from services.chat.tests.test_base import BaseChatTest


class TestAutosuggestEndpoint(BaseChatTest):
    seed = False

    def test_prefix_suggestions(self):
        with self.create_test_client(app) as client:
            response = client.post(
                "/api/autosuggest", json={"text": "how", "maxSuggestions": 3}
            )

        assert response.status_code == 200
        data = response.json()
        assert [s["text"] for s in data["suggestions"]] == [
            "how does",
            "how to",
            "how can I",
        ]
        assert data["query"] == "how"
        assert data["model"] == "chat-model"
        assert data["timestamp"].endswith("Z")

    def test_default_limit_is_five(self):
        with self.create_test_client(app) as client:
            response = client.post("/api/autosuggest", json={"text": "tell me"})

        assert len(response.json()["suggestions"]) == 5

    def test_short_text_returns_bare_empty_list(self):
        with self.create_test_client(app) as client:
            response = client.post("/api/autosuggest", json={"text": "he"})

        assert response.status_code == 200
        assert response.json() == {"suggestions": []}

    def test_exact_match_is_not_suggested(self):
        with self.create_test_client(app) as client:
            response = client.post("/api/autosuggest", json={"text": "how to"})

        assert response.json()["suggestions"] == []

    def test_missing_text_rejected(self):
        with self.create_test_client(app) as client:
            response = client.post("/api/autosuggest", json={})

        assert response.status_code == 400
        assert response.json()["error"] == "Text input is required"

    def test_non_string_text_rejected(self):
        with self.create_test_client(app) as client:
            response = client.post("/api/autosuggest", json={"text": 42})

        assert response.status_code == 400
        assert response.json()["error"] == "Text input is required"

    def test_large_max_suggestions_returns_what_matches(self):
        with self.create_test_client(app) as client:
            limited = client.post(
                "/api/autosuggest", json={"text": "how", "maxSuggestions": 3}
            )
            response = client.post(
                "/api/autosuggest", json={"text": "how", "maxSuggestions": 25}
            )

        assert response.status_code == 200
        suggestions = response.json()["suggestions"]
        assert 3 <= len(suggestions) <= 25
        assert suggestions[:3] == limited.json()["suggestions"]

    def test_zero_max_suggestions_rejected(self):
        with self.create_test_client(app) as client:
            response = client.post(
                "/api/autosuggest", json={"text": "how", "maxSuggestions": 0}
            )

        assert response.status_code == 400


class TestStarterSuggestions(BaseChatTest):
    seed = False

    def test_falls_back_when_model_output_is_unusable(self):
        with self.create_test_client(app) as client:
            response = client.get("/api/autosuggest/starter")

        assert response.status_code == 200
        data = response.json()
        assert [s["id"] for s in data["suggestions"]] == [
            s.id for s in FALLBACK_STARTER_SUGGESTIONS
        ]
        assert data["model"] == "chat-model"

    def test_fallback_respects_max_suggestions(self):
        with self.create_test_client(app) as client:
            response = client.get(
                "/api/autosuggest/starter", params={"maxSuggestions": 2}
            )

        assert len(response.json()["suggestions"]) == 2

    def test_large_max_suggestions_returns_whole_fallback(self):
        with self.create_test_client(app) as client:
            response = client.get(
                "/api/autosuggest/starter", params={"maxSuggestions": 25}
            )

        assert response.status_code == 200
        assert len(response.json()["suggestions"]) == len(
            FALLBACK_STARTER_SUGGESTIONS
        )


class TestMockStarterSuggestions(BaseChatTest):
    seed = False

    def settings_overrides(self):
        return {"starter_suggestion_source": "mock"}

    def test_confident_dataset_entries(self):
        with self.create_test_client(app) as client:
            response = client.get("/api/autosuggest/starter")

        assert [s["text"] for s in response.json()["suggestions"]] == [
            "tell me about",
            "tell me how to",
            "tell me more about",
        ]
