"""Integration tests for lumina.api.main — FastAPI REST API endpoints.

All tests use the FastAPI TestClient with a mocked GenerationGateway so that
no request reaches the provider.  Tests cover every endpoint:

- ``GET /api/config`` — Option lists for the studio form.
- ``/api/auth/*`` — Sign in, sign out, current account.
- ``/api/sessions`` — Session lifecycle and form updates.
- ``/api/sessions/{sid}/{operation}`` — Enhance, generate, upscale, animate.
- ``/api/sessions/{sid}/cancel/{axis}`` — Abandoning an operation.
- ``/api/sessions/{sid}/save`` and ``/export`` — Save and download.
- ``/api/sessions/{sid}/open/{aid}`` — Archive hand-off.
- ``/api/history`` and ``/api/stats`` — The archive.
"""

from __future__ import annotations

import io

from PIL import Image

from lumina.core.errors import GenerationError, MotionTimeoutError

# ---------------------------------------------------------------------------
# Helpers.
# ---------------------------------------------------------------------------


def _open_session(client, **inputs) -> str:
    resp = client.post("/api/sessions", json=inputs or None)
    assert resp.status_code == 200
    return resp.json()["id"]


def _login(client, email: str = "ada@example.com") -> dict:
    resp = client.post("/api/auth/login", json={"username": "ada", "email": email})
    assert resp.status_code == 200
    return resp.json()["account"]


def _generated_session(client) -> str:
    sid = _open_session(client, prompt="a cat", style="Cyberpunk", aspectRatio="16:9")
    resp = client.post(f"/api/sessions/{sid}/generate")
    assert resp.json()["ok"] is True
    return sid


# ---------------------------------------------------------------------------
# Configuration endpoint tests.
# ---------------------------------------------------------------------------


class TestGetConfig:
    """Test GET /api/config — studio option lists."""

    def test_config_lists_options(self, test_client):
        data = test_client.get("/api/config").json()
        assert "version" in data
        assert data["styles"][0] == "None"
        assert data["aspect_ratios"] == ["1:1", "16:9", "9:16", "4:3", "3:4"]

    def test_config_lists_export_formats(self, test_client):
        formats = test_client.get("/api/config").json()["export_formats"]
        assert [f["id"] for f in formats] == ["PNG", "JPEG", "WEBP", "BMP"]
        assert formats[0]["mime_type"] == "image/png"


# ---------------------------------------------------------------------------
# Account endpoint tests.
# ---------------------------------------------------------------------------


class TestAuth:
    def test_signed_out_by_default(self, test_client):
        assert test_client.get("/api/auth/me").json() == {"account": None}

    def test_login_then_me(self, test_client):
        account = _login(test_client)
        assert account["email"] == "ada@example.com"
        assert test_client.get("/api/auth/me").json()["account"]["id"] == account["id"]

    def test_invalid_email_rejected(self, test_client):
        resp = test_client.post("/api/auth/login", json={"email": "not-an-email"})
        assert resp.status_code == 400
        assert "valid email" in resp.json()["detail"]

    def test_missing_email_is_422(self, test_client):
        assert test_client.post("/api/auth/login", json={"username": "ada"}).status_code == 422

    def test_logout(self, test_client):
        _login(test_client)
        assert test_client.post("/api/auth/logout").json() == {"success": True}
        assert test_client.get("/api/auth/me").json()["account"] is None


# ---------------------------------------------------------------------------
# Session lifecycle tests.
# ---------------------------------------------------------------------------


class TestSessions:
    def test_create_with_defaults(self, test_client):
        data = test_client.post("/api/sessions").json()
        assert data["prompt"] == ""
        assert data["style"] == "None"
        assert data["aspectRatio"] == "1:1"
        assert data["currentArtifact"] is None
        assert data["operations"]["generate"]["status"] == "idle"

    def test_create_with_inputs(self, test_client):
        sid = _open_session(test_client, prompt="a cat", aspectRatio="9:16")
        data = test_client.get(f"/api/sessions/{sid}").json()
        assert data["prompt"] == "a cat"
        assert data["aspectRatio"] == "9:16"

    def test_sessions_are_independent(self, test_client):
        first = _open_session(test_client, prompt="first")
        second = _open_session(test_client, prompt="second")
        assert first != second
        assert test_client.get(f"/api/sessions/{first}").json()["prompt"] == "first"

    def test_patch_updates_fields(self, test_client):
        sid = _open_session(test_client)
        resp = test_client.patch(f"/api/sessions/{sid}", json={"style": "Sketch"})
        assert resp.status_code == 200
        assert resp.json()["style"] == "Sketch"

    def test_patch_invalid_style(self, test_client):
        sid = _open_session(test_client)
        resp = test_client.patch(
            f"/api/sessions/{sid}", json={"style": "Watercolour", "prompt": "kept out"}
        )
        assert resp.status_code == 400
        assert test_client.get(f"/api/sessions/{sid}").json()["prompt"] == ""

    def test_unknown_session(self, test_client):
        assert test_client.get("/api/sessions/nope").status_code == 404
        assert test_client.post("/api/sessions/nope/generate").status_code == 404

    def test_delete_session(self, test_client):
        sid = _open_session(test_client)
        resp = test_client.delete(f"/api/sessions/{sid}")
        assert resp.json() == {"success": True, "closed": sid}
        assert test_client.get(f"/api/sessions/{sid}").status_code == 404


# ---------------------------------------------------------------------------
# Operation endpoint tests.
# ---------------------------------------------------------------------------


class TestEnhance:
    def test_enhance_replaces_prompt(self, test_client, fake_gateway):
        sid = _open_session(test_client, prompt="a cat")
        data = test_client.post(f"/api/sessions/{sid}/enhance").json()

        assert data["ok"] is True
        assert data["value"] == "a majestic cat bathed in neon light"
        assert data["session"]["prompt"] == "a majestic cat bathed in neon light"
        fake_gateway.enhance.assert_awaited_once_with("a cat")

    def test_empty_prompt_rejected(self, test_client, fake_gateway):
        sid = _open_session(test_client)
        resp = test_client.post(f"/api/sessions/{sid}/enhance")
        assert resp.status_code == 409
        fake_gateway.enhance.assert_not_awaited()


class TestGenerate:
    def test_generate_sets_artifact(self, test_client, fake_gateway, png_data_uri):
        sid = _open_session(test_client, prompt="a cat", style="Cyberpunk", aspectRatio="16:9")

        data = test_client.post(f"/api/sessions/{sid}/generate").json()

        assert data["ok"] is True
        assert data["status"] == "succeeded"
        artifact = data["value"]
        assert artifact["url"] == png_data_uri
        assert artifact["originalPrompt"] == "a cat"
        assert artifact["prompt"].startswith("a cat, in the style of Cyberpunk")
        assert artifact["aspectRatio"] == "16:9"
        assert data["session"]["currentArtifact"]["id"] == artifact["id"]
        fake_gateway.generate.assert_awaited_once_with("a cat", "Cyberpunk", "16:9")

    def test_generation_failure_is_tagged(self, test_client, fake_gateway):
        fake_gateway.generate.side_effect = GenerationError("No image was generated")
        sid = _open_session(test_client, prompt="a cat")

        resp = test_client.post(f"/api/sessions/{sid}/generate")

        assert resp.status_code == 200
        data = resp.json()
        assert data["ok"] is False
        assert data["status"] == "failed"
        assert data["notify"] is True
        assert data["message"] == "No image was generated"
        assert data["session"]["currentArtifact"] is None

    def test_generate_clears_animation(self, test_client):
        sid = _generated_session(test_client)
        test_client.post(f"/api/sessions/{sid}/animate")

        data = test_client.post(f"/api/sessions/{sid}/generate").json()

        assert data["session"]["animationUrl"] is None


class TestUpscale:
    def test_upscale_replaces_url_only(self, test_client, upscaled_data_uri):
        sid = _generated_session(test_client)
        before = test_client.get(f"/api/sessions/{sid}").json()["currentArtifact"]

        data = test_client.post(f"/api/sessions/{sid}/upscale").json()

        after = data["session"]["currentArtifact"]
        assert data["ok"] is True
        assert after["url"] == upscaled_data_uri
        assert after["id"] == before["id"]
        assert after["prompt"] == before["prompt"]

    def test_upscale_without_image(self, test_client):
        sid = _open_session(test_client, prompt="a cat")
        assert test_client.post(f"/api/sessions/{sid}/upscale").status_code == 409

    def test_upscale_failure_is_silent(self, test_client, fake_gateway, png_data_uri):
        fake_gateway.upscale.side_effect = RuntimeError("provider down")
        sid = _generated_session(test_client)

        data = test_client.post(f"/api/sessions/{sid}/upscale").json()

        assert data["ok"] is False
        assert data["notify"] is False
        assert data["session"]["currentArtifact"]["url"] == png_data_uri


class TestAnimate:
    def test_animate_sets_video(self, test_client, fake_gateway, png_data_uri):
        sid = _generated_session(test_client)

        data = test_client.post(f"/api/sessions/{sid}/animate").json()

        assert data["ok"] is True
        assert data["value"] == "/media/motion_test.mp4"
        assert data["session"]["animationUrl"] == "/media/motion_test.mp4"
        url, prompt, ratio = fake_gateway.animate.await_args.args
        assert url == png_data_uri
        assert prompt.startswith("a cat, in the style of Cyberpunk")
        assert ratio == "16:9"

    def test_animate_timeout(self, test_client, fake_gateway):
        fake_gateway.animate.side_effect = MotionTimeoutError(
            "Animation timed out. Please try again."
        )
        sid = _generated_session(test_client)

        data = test_client.post(f"/api/sessions/{sid}/animate").json()

        assert data["status"] == "timed_out"
        assert data["notify"] is True
        assert data["session"]["animationUrl"] is None
        assert data["session"]["operations"]["animate"]["status"] == "timed_out"

    def test_missing_key_warns_but_proceeds(self, test_client, fake_gateway, credentials):
        credentials.has_selected_key.return_value = False
        sid = _generated_session(test_client)

        data = test_client.post(f"/api/sessions/{sid}/animate").json()

        assert data["ok"] is True
        assert "API key" in data["warning"]
        credentials.open_select_key.assert_awaited_once()
        fake_gateway.animate.assert_awaited_once()


class TestCancel:
    def test_cancel_idle_axis(self, test_client):
        sid = _open_session(test_client)
        data = test_client.post(f"/api/sessions/{sid}/cancel/animate").json()
        assert data["cancelled"] is False
        assert data["session"]["operations"]["animate"]["status"] == "idle"

    def test_unknown_axis(self, test_client):
        sid = _open_session(test_client)
        assert test_client.post(f"/api/sessions/{sid}/cancel/teleport").status_code == 400


# ---------------------------------------------------------------------------
# Save, export and archive hand-off.
# ---------------------------------------------------------------------------


class TestSave:
    def test_save_requires_login(self, test_client):
        sid = _generated_session(test_client)

        resp = test_client.post(f"/api/sessions/{sid}/save")

        assert resp.status_code == 401
        assert resp.json()["login_required"] is True
        assert test_client.get("/api/history").json()["total"] == 0

    def test_save_adds_to_history(self, test_client):
        _login(test_client)
        sid = _generated_session(test_client)

        saved = test_client.post(f"/api/sessions/{sid}/save").json()

        history = test_client.get("/api/history").json()
        assert saved["success"] is True
        assert history["total"] == 1
        assert history["images"][0]["id"] == saved["artifact"]["id"]

    def test_save_without_image(self, test_client):
        _login(test_client)
        sid = _open_session(test_client)
        assert test_client.post(f"/api/sessions/{sid}/save").status_code == 409

    def test_saving_twice_keeps_one_entry(self, test_client):
        _login(test_client)
        sid = _generated_session(test_client)

        test_client.post(f"/api/sessions/{sid}/save")
        test_client.post(f"/api/sessions/{sid}/upscale")
        test_client.post(f"/api/sessions/{sid}/save")

        assert test_client.get("/api/history").json()["total"] == 1


class TestExport:
    def test_export_jpeg(self, test_client):
        sid = _generated_session(test_client)
        artifact_id = test_client.get(f"/api/sessions/{sid}").json()["currentArtifact"]["id"]

        resp = test_client.get(f"/api/sessions/{sid}/export", params={"format": "JPEG"})

        assert resp.status_code == 200
        assert resp.headers["content-type"] == "image/jpeg"
        assert f'filename="lumina_{artifact_id}.jpeg"' in resp.headers["content-disposition"]
        assert Image.open(io.BytesIO(resp.content)).format == "JPEG"

    def test_export_by_mime_type(self, test_client):
        sid = _generated_session(test_client)
        resp = test_client.get(f"/api/sessions/{sid}/export", params={"format": "image/webp"})
        assert resp.headers["content-type"] == "image/webp"

    def test_unsupported_format(self, test_client):
        sid = _generated_session(test_client)
        resp = test_client.get(f"/api/sessions/{sid}/export", params={"format": "TIFF"})
        assert resp.status_code == 400

    def test_unreadable_image_gives_no_file(self, test_client, fake_gateway):
        fake_gateway.generate.return_value = "data:image/png;base64,AAAA"
        sid = _generated_session(test_client)

        resp = test_client.get(f"/api/sessions/{sid}/export")

        assert resp.status_code == 204
        assert resp.content == b""


class TestOpenArtifact:
    def test_open_saved_image(self, test_client):
        _login(test_client)
        saved_id = test_client.post(
            f"/api/sessions/{_generated_session(test_client)}/save"
        ).json()["artifact"]["id"]
        sid = _open_session(test_client)

        data = test_client.post(f"/api/sessions/{sid}/open/{saved_id}").json()

        assert data["currentArtifact"]["id"] == saved_id
        assert data["animationUrl"] is None

    def test_open_unknown_image(self, test_client):
        sid = _open_session(test_client)
        resp = test_client.post(f"/api/sessions/{sid}/open/missing00")
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Image not found"


# ---------------------------------------------------------------------------
# History and statistics.
# ---------------------------------------------------------------------------


class TestHistory:
    def test_empty_history(self, test_client):
        assert test_client.get("/api/history").json() == {"total": 0, "images": []}

    def test_delete_is_idempotent(self, test_client):
        _login(test_client)
        sid = _generated_session(test_client)
        saved_id = test_client.post(f"/api/sessions/{sid}/save").json()["artifact"]["id"]

        first = test_client.delete(f"/api/history/{saved_id}")
        second = test_client.delete(f"/api/history/{saved_id}")

        assert first.json() == {"success": True, "deleted": saved_id}
        assert second.status_code == 200
        assert test_client.get("/api/history").json()["total"] == 0

    def test_history_survives_restart(self, test_config, fake_gateway, credentials):
        from fastapi.testclient import TestClient

        from lumina.api.main import create_app

        with TestClient(create_app(test_config, gateway=fake_gateway, credentials=credentials)) as c:
            _login(c)
            sid = _generated_session(c)
            saved_id = c.post(f"/api/sessions/{sid}/save").json()["artifact"]["id"]

        with TestClient(create_app(test_config, gateway=fake_gateway, credentials=credentials)) as c:
            images = c.get("/api/history").json()["images"]
            assert [image["id"] for image in images] == [saved_id]
            assert c.get("/api/auth/me").json()["account"] is not None


class TestStats:
    def test_empty_stats(self, test_client):
        data = test_client.get("/api/stats").json()
        assert data == {
            "total_images": 0,
            "aspect_ratio_counts": {},
            "newest": None,
            "oldest": None,
        }

    def test_stats_count_ratios(self, test_client):
        _login(test_client)
        for _ in range(2):
            sid = _generated_session(test_client)
            test_client.post(f"/api/sessions/{sid}/save")

        data = test_client.get("/api/stats").json()

        assert data["total_images"] == 2
        assert data["aspect_ratio_counts"] == {"16:9": 2}
        assert data["newest"] >= data["oldest"]
