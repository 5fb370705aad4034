"""
API endpoint tests.
"""

import base64

import pytest

from tests.conftest import audio_b64, make_token


def create_profile(client, headers, name="Rose", relation="grandmother"):
    response = client.post(
        "/v1/profiles",
        json={"name": name, "relation": relation, "notes": "Loved gardening"},
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()


def upload(client, headers, profile_id, slot_index, audio=None):
    return client.put(
        f"/v1/profiles/{profile_id}/recordings/{slot_index}",
        json={
            "prompt_text": f"prompt {slot_index}",
            "audio_base64": audio or audio_b64(),
        },
        headers=headers,
    )


def train_voice(client, headers, profile_id):
    for index in range(3):
        response = upload(client, headers, profile_id, index)
        assert response.status_code == 200
    return response.json()


class TestHealthEndpoint:
    """Health check endpoint tests."""

    def test_health_check(self, client):
        """Test health check returns 200."""
        response = client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["checks"]["database"]["status"] == "healthy"
        assert "version" in data

    def test_root_endpoint(self, client):
        """Test root endpoint."""
        response = client.get("/")
        assert response.status_code == 200

        data = response.json()
        assert data["service"] == "essence-voice"
        assert "version" in data

    def test_probes(self, client):
        assert client.get("/health/live").json() == {"status": "alive"}
        assert client.get("/health/ready").json() == {"status": "ready"}

    def test_correlation_id_echoed(self, client):
        response = client.get("/health/live", headers={"X-Correlation-ID": "corr-123"})
        assert response.headers["X-Correlation-ID"] == "corr-123"


class TestAuthentication:
    """Bearer token handling."""

    def test_missing_token(self, client):
        response = client.get("/v1/profiles")
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTHENTICATION_ERROR"

    def test_wrong_secret(self, client):
        token = make_token("owner-1", secret="not-the-secret")
        response = client.get("/v1/profiles", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_valid_token(self, client, auth_headers):
        response = client.get("/v1/profiles", headers=auth_headers)
        assert response.status_code == 200
        assert response.json() == {"profiles": [], "total": 0}

    def test_training_prompts_require_auth(self, client):
        assert client.get("/v1/training/prompts").status_code == 401


class TestProfileEndpoints:
    """Profile endpoint tests."""

    def test_create_profile(self, client, auth_headers):
        """Test creating a profile."""
        data = create_profile(client, auth_headers)

        assert data["name"] == "Rose"
        assert data["voice_model_status"] == "not_submitted"
        assert data["has_voice"] is False
        assert data["recordings_count"] == 0

    def test_create_profile_validation(self, client, auth_headers):
        response = client.post("/v1/profiles", json={"name": ""}, headers=auth_headers)
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_get_profile_not_found(self, client, auth_headers):
        """Test getting non-existent profile."""
        response = client.get("/v1/profiles/nonexistent", headers=auth_headers)
        assert response.status_code == 404

    def test_profiles_isolated_between_owners(self, client, auth_headers, other_auth_headers):
        profile = create_profile(client, auth_headers)

        assert client.get(f"/v1/profiles/{profile['id']}", headers=other_auth_headers).status_code == 404
        assert client.get("/v1/profiles", headers=other_auth_headers).json()["total"] == 0
        response = client.delete(f"/v1/profiles/{profile['id']}", headers=other_auth_headers)
        assert response.status_code == 404

    def test_update_profile(self, client, auth_headers):
        profile = create_profile(client, auth_headers)

        response = client.patch(
            f"/v1/profiles/{profile['id']}",
            json={"relation": "nana"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json()["relation"] == "nana"
        assert response.json()["name"] == "Rose"

    def test_update_cannot_touch_voice_status(self, client, auth_headers):
        profile = create_profile(client, auth_headers)

        response = client.patch(
            f"/v1/profiles/{profile['id']}",
            json={"voice_model_status": "ready"},
            headers=auth_headers,
        )

        assert response.status_code == 422

    def test_delete_profile(self, client, auth_headers, provider):
        profile = create_profile(client, auth_headers)
        train_voice(client, auth_headers, profile["id"])

        response = client.delete(f"/v1/profiles/{profile['id']}", headers=auth_headers)

        assert response.status_code == 204
        assert provider.deleted == ["voice-1"]
        assert client.get(f"/v1/profiles/{profile['id']}", headers=auth_headers).status_code == 404


class TestRecordingEndpoints:
    """Training recording endpoint tests."""

    def test_upload_progression(self, client, auth_headers, provider):
        profile = create_profile(client, auth_headers)

        first = upload(client, auth_headers, profile["id"], 0).json()
        assert first["voice_model_status"] == "training"
        assert first["recording"]["slot_index"] == 0

        last = train_voice(client, auth_headers, profile["id"])
        assert last["voice_model_status"] == "ready"
        assert len(provider.created) == 1

        status = client.get(f"/v1/profiles/{profile['id']}/voice-status", headers=auth_headers).json()
        assert status == {"voice_model_status": "ready", "recording_count": 3, "total_required": 3}

        detail = client.get(f"/v1/profiles/{profile['id']}", headers=auth_headers).json()
        assert detail["has_voice"] is True
        assert detail["recordings_count"] == 3

    def test_data_url_prefix_accepted(self, client, auth_headers):
        profile = create_profile(client, auth_headers)

        response = upload(
            client, auth_headers, profile["id"], 1, audio=f"data:audio/webm;base64,{audio_b64(b'webm')}"
        )

        assert response.status_code == 200
        recording = response.json()["recording"]
        assert base64.b64decode(recording["audio_base64"]) == b"webm"

    def test_invalid_base64(self, client, auth_headers):
        profile = create_profile(client, auth_headers)

        response = upload(client, auth_headers, profile["id"], 0, audio="not base64!!")

        assert response.status_code == 422

    @pytest.mark.parametrize("slot_index", [-1, 3])
    def test_invalid_slot_index(self, client, auth_headers, slot_index):
        profile = create_profile(client, auth_headers)

        response = upload(client, auth_headers, profile["id"], slot_index)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_SLOT_INDEX"

    def test_list_recordings_ordered(self, client, auth_headers):
        profile = create_profile(client, auth_headers)
        for index in (2, 0):
            upload(client, auth_headers, profile["id"], index)

        data = client.get(f"/v1/profiles/{profile['id']}/recordings", headers=auth_headers).json()

        assert [r["slot_index"] for r in data["recordings"]] == [0, 2]
        assert data["total_required"] == 3

    def test_clear_slot(self, client, auth_headers, provider):
        profile = create_profile(client, auth_headers)
        train_voice(client, auth_headers, profile["id"])

        response = client.delete(f"/v1/profiles/{profile['id']}/recordings/1", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {"removed": True, "voice_model_status": "training"}
        assert provider.deleted == ["voice-1"]

    def test_clear_empty_slot(self, client, auth_headers):
        profile = create_profile(client, auth_headers)

        response = client.delete(f"/v1/profiles/{profile['id']}/recordings/1", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {"removed": False, "voice_model_status": "not_submitted"}


class TestMessageEndpoints:
    """Message endpoint tests."""

    def post_message(self, client, headers, profile_id, content, **extra):
        return client.post(
            f"/v1/profiles/{profile_id}/messages",
            json={"title": "For you", "category": "birthday", "content": content, **extra},
            headers=headers,
        )

    def test_voice_not_ready(self, client, auth_headers, provider):
        profile = create_profile(client, auth_headers)

        response = self.post_message(client, auth_headers, profile["id"], "Happy birthday")

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "VOICE_NOT_READY"
        assert provider.synthesized == []

    def test_create_and_fetch_message(self, client, auth_headers):
        profile = create_profile(client, auth_headers)
        train_voice(client, auth_headers, profile["id"])

        response = self.post_message(client, auth_headers, profile["id"], "a" * 750, is_private=True)

        assert response.status_code == 201
        message = response.json()
        assert message["duration"] == 60
        assert message["has_audio"] is True
        assert message["is_private"] is True

        fetched = client.get(f"/v1/messages/{message['id']}", headers=auth_headers)
        assert fetched.json()["id"] == message["id"]

        audio = client.get(f"/v1/messages/{message['id']}/audio", headers=auth_headers)
        assert audio.status_code == 200
        assert audio.headers["content-type"] == "audio/mpeg"
        assert audio.content.startswith(b"ID3")

        listing = client.get(f"/v1/profiles/{profile['id']}/messages", headers=auth_headers).json()
        assert listing["total"] == 1

    def test_length_boundary(self, client, auth_headers, provider):
        profile = create_profile(client, auth_headers)
        train_voice(client, auth_headers, profile["id"])

        too_long = self.post_message(client, auth_headers, profile["id"], "a" * 2001)
        assert too_long.status_code == 422
        assert too_long.json()["error"]["code"] == "CONTENT_TOO_LONG"
        assert provider.synthesized == []

        at_limit = self.post_message(client, auth_headers, profile["id"], "a" * 2000)
        assert at_limit.status_code == 201
        assert at_limit.json()["duration"] == 160

    def test_empty_content(self, client, auth_headers):
        profile = create_profile(client, auth_headers)
        train_voice(client, auth_headers, profile["id"])

        response = self.post_message(client, auth_headers, profile["id"], "   ")

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "EMPTY_CONTENT"

    def test_synthesis_failure(self, client, auth_headers, provider):
        profile = create_profile(client, auth_headers)
        train_voice(client, auth_headers, profile["id"])
        provider.fail_synthesize = True

        response = self.post_message(client, auth_headers, profile["id"], "Hello")

        assert response.status_code == 502
        assert response.json()["error"]["code"] == "SYNTHESIS_FAILED"
        assert "fake" not in response.text

    def test_message_survives_profile_deletion(self, client, auth_headers):
        profile = create_profile(client, auth_headers)
        train_voice(client, auth_headers, profile["id"])
        message = self.post_message(client, auth_headers, profile["id"], "Hello").json()

        client.delete(f"/v1/profiles/{profile['id']}", headers=auth_headers)

        fetched = client.get(f"/v1/messages/{message['id']}", headers=auth_headers).json()
        assert fetched["profile_id"] is None

    def test_delete_message(self, client, auth_headers, other_auth_headers):
        profile = create_profile(client, auth_headers)
        train_voice(client, auth_headers, profile["id"])
        message = self.post_message(client, auth_headers, profile["id"], "Hello").json()

        assert client.delete(f"/v1/messages/{message['id']}", headers=other_auth_headers).status_code == 404
        assert client.delete(f"/v1/messages/{message['id']}", headers=auth_headers).status_code == 204
        assert client.get(f"/v1/messages/{message['id']}", headers=auth_headers).status_code == 404


class TestTrainingPrompts:
    """Prompt script endpoint."""

    def test_prompts_match_slot_count(self, client, auth_headers):
        data = client.get("/v1/training/prompts", headers=auth_headers).json()

        assert data["total_required"] == 3
        assert [p["slot_index"] for p in data["prompts"]] == [0, 1, 2]
        assert data["prompts"][0]["text"].startswith("The quick brown fox")


class TestMetricsEndpoint:
    """Metrics endpoint tests."""

    def test_metrics_endpoint(self, client, auth_headers):
        """Test Prometheus metrics endpoint."""
        client.get("/v1/profiles", headers=auth_headers)

        response = client.get("/metrics")
        assert response.status_code == 200
        assert "essence_http_requests_total" in response.text
        assert "essence_voice_status_transitions_total" in response.text
