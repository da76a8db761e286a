"""
Tests for saved vendor API keys
"""
import pytest

from media_studio.exceptions import ApiKeyMissing, InvalidInput
from media_studio.services.api_key_service import ApiKeyService, mask_key

from conftest import headers_for, make_user


class TestApiKeyService:

    def test_mask(self):
        assert mask_key("abcdef123456") == "********3456"
        assert mask_key("abc") == "***"

    def test_save_replaces_existing(self, db_session, test_user):
        service = ApiKeyService(db_session)
        service.save_key(test_user, "fal", "first")
        service.save_key(test_user, "FAL", "second")

        assert service.get_key(test_user, "fal") == "second"
        assert len(service.list_keys(test_user)) == 1

    def test_unknown_vendor(self, db_session, test_user):
        with pytest.raises(InvalidInput):
            ApiKeyService(db_session).save_key(test_user, "openai", "sk-123")

    def test_resolve_falls_back_to_server_key(self, db_session, test_user):
        assert ApiKeyService(db_session).resolve(test_user, "aivideoapi") == "server-aivideo-key"

    def test_resolve_without_any_key(self, db_session, test_user, monkeypatch):
        from media_studio.config import config
        monkeypatch.setattr(config, "AZURE_SPEECH_KEY", None)

        with pytest.raises(ApiKeyMissing) as exc_info:
            ApiKeyService(db_session).resolve(test_user, "azure_speech")
        assert exc_info.value.vendor == "azure_speech"

    def test_keys_are_per_user(self, db_session, test_user):
        other = make_user(db_session, "other@example.com")
        service = ApiKeyService(db_session)
        service.save_key(test_user, "fal", "mine")

        assert service.get_key(other, "fal") is None


class TestApiKeyRoutes:

    def test_round_trip(self, client, auth_headers):
        saved = client.put("/api/keys/fal", json={"key_value": "fal-abcdef-9876"}, headers=auth_headers)
        assert saved.status_code == 200
        assert saved.json()["masked_value"].endswith("9876")
        assert "fal-abcdef" not in saved.json()["masked_value"]

        listed = client.get("/api/keys", headers=auth_headers).json()["keys"]
        assert [k["key_name"] for k in listed] == ["fal"]
        assert "key_value" not in listed[0]

        fetched = client.get("/api/keys/fal", headers=auth_headers).json()
        assert fetched == {"key_name": "fal", "key_value": "fal-abcdef-9876", "configured": True}

        assert client.delete("/api/keys/fal", headers=auth_headers).status_code == 200
        assert client.get("/api/keys/fal", headers=auth_headers).json()["configured"] is False

    def test_delete_missing(self, client, auth_headers):
        response = client.delete("/api/keys/fal", headers=auth_headers)
        assert response.status_code == 404

    def test_other_users_cannot_read(self, client, db_session, auth_headers):
        client.put("/api/keys/fal", json={"key_value": "secret-value"}, headers=auth_headers)
        other = make_user(db_session, "snoop@example.com")

        response = client.get("/api/keys/fal", headers=headers_for(other))
        assert response.json()["key_value"] is None
