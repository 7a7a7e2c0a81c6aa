"""Tests for the upstream HTTP clients and the ffmpeg runner."""

import asyncio
import subprocess
from types import SimpleNamespace

import httpx
import pytest

from storyweaver import elevenlabs_client, media, translate_client
from storyweaver.replicate_client import _parse_selector


def _patch_async_client(monkeypatch, handler):
    real_client = httpx.AsyncClient
    transport = httpx.MockTransport(handler)
    monkeypatch.setattr(httpx, "AsyncClient", lambda **kwargs: real_client(transport=transport, **kwargs))


class TestReplicateSelector:

    def test_model_alias(self):
        assert _parse_selector("black-forest-labs/flux-schnell") == (
            "model", {"owner": "black-forest-labs", "name": "flux-schnell"})

    def test_model_with_tag(self):
        assert _parse_selector("owner/model:latest")[0] == "model"

    def test_bare_version(self):
        assert _parse_selector("5c7d5dc6dd8bf75c1acaa8565735e7986bc5b66206b55cca93cb72c9bf15ccaa")[0] == "version"


class TestElevenLabs:

    def test_retries_on_rate_limit(self, monkeypatch):
        monkeypatch.setenv("ELEVENLABS_API_KEY", "key")
        monkeypatch.setenv("ELEVENLABS_VOICE_ID", "voice")
        responses = iter([httpx.Response(429), httpx.Response(429), httpx.Response(200, content=b"ID3audio")])
        _patch_async_client(monkeypatch, lambda request: next(responses))

        waits = []
        real_sleep = asyncio.sleep

        async def fake_sleep(seconds):
            waits.append(seconds)
            await real_sleep(0)

        monkeypatch.setattr(elevenlabs_client.asyncio, "sleep", fake_sleep)
        assert asyncio.run(elevenlabs_client.tts_to_bytes("Hello")) == b"ID3audio"
        assert waits == [1, 2]

    def test_other_errors_are_raised(self, monkeypatch):
        monkeypatch.setenv("ELEVENLABS_API_KEY", "key")
        monkeypatch.setenv("ELEVENLABS_VOICE_ID", "voice")
        _patch_async_client(monkeypatch, lambda request: httpx.Response(401))
        with pytest.raises(httpx.HTTPStatusError):
            asyncio.run(elevenlabs_client.tts_to_bytes("Hello"))

    def test_missing_voice(self, monkeypatch):
        monkeypatch.setenv("ELEVENLABS_API_KEY", "key")
        monkeypatch.delenv("ELEVENLABS_VOICE_ID", raising=False)
        assert elevenlabs_client.tts_available() is False
        with pytest.raises(RuntimeError):
            asyncio.run(elevenlabs_client.tts_to_bytes("Hello"))


class TestTranslate:

    def test_translation(self, monkeypatch):
        monkeypatch.setenv("GOOGLE_CLOUD_API_KEY", "key")
        _patch_async_client(monkeypatch, lambda request: httpx.Response(
            200, json={"data": {"translations": [{"translatedText": "hola"}]}}))
        assert asyncio.run(translate_client.translate_text("hello", "es")) == "hola"

    def test_error_returns_none(self, monkeypatch):
        monkeypatch.setenv("GOOGLE_CLOUD_API_KEY", "key")
        _patch_async_client(monkeypatch, lambda request: httpx.Response(403, text="forbidden"))
        assert asyncio.run(translate_client.translate_text("hello", "es")) is None

    def test_unconfigured_returns_none(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_CLOUD_API_KEY", raising=False)
        assert asyncio.run(translate_client.translate_text("hello", "es")) is None


class TestFfmpegRunner:

    def test_timeout_is_reported(self, monkeypatch):
        def slow(cmd, **kwargs):
            raise subprocess.TimeoutExpired(cmd, kwargs.get("timeout"))

        monkeypatch.setattr(media.subprocess, "run", slow)
        with pytest.raises(RuntimeError, match="timed out"):
            media._run(["ffmpeg", "-version"], timeout=1)

    def test_nonzero_exit_is_reported(self, monkeypatch):
        monkeypatch.setattr(media.subprocess, "run",
                            lambda cmd, **kwargs: SimpleNamespace(returncode=1, stderr=b"No such file"))
        with pytest.raises(RuntimeError, match="No such file"):
            media._run(["ffmpeg", "-i", "missing.png"])

    def test_ffmpeg_missing(self, monkeypatch):
        def missing(cmd, **kwargs):
            raise FileNotFoundError("ffmpeg")

        monkeypatch.setattr(media.subprocess, "run", missing)
        assert media.ffmpeg_available() is False
