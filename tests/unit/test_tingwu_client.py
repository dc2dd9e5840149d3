"""Tests for the Tingwu remote task client.

The vendor SDK is never imported: the SDK client and request models are
replaced with mocks, and response bodies are plain dicts shaped like the
SDK's ``to_map()`` output.
"""
from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock, patch

import pytest
from pydantic import SecretStr

from src.config import Config
from src.config.secure_config import TingwuCredentials
from src.exceptions import ConfigurationError
from src.providers.tingwu import (
    DEFAULT_PARAMETERS,
    TingwuClient,
    parse_response,
    pascalize,
    to_pascal_case,
    to_snake_case,
)
from tests.mocks.remote_mocks import TINGWU_COMPLETED_BODY, TINGWU_CREATE_BODY, TINGWU_ERROR_BODY


@pytest.fixture
def credentials() -> TingwuCredentials:
    return TingwuCredentials(
        ALIYUN_ACCESS_KEY_ID=SecretStr("test-access-key-id"),
        ALIYUN_ACCESS_KEY_SECRET=SecretStr("test-access-key-secret"),
    )


@pytest.fixture
def client(credentials) -> TingwuClient:
    return TingwuClient(credentials, app_key="test-app-key")


def sdk_response(body: dict) -> SimpleNamespace:
    """Mimic an SDK response whose body exposes ``to_map``."""
    return SimpleNamespace(body=Mock(to_map=Mock(return_value=body)))


class FakeRequestModel:
    """Stand-in for SDK TeaModel request classes."""

    def from_map(self, m):
        self.map = m
        return self


class TestKeyConversion:
    """snake_case / camelCase / PascalCase handling."""

    @pytest.mark.parametrize(
        "key,expected",
        [("file_url", "FileUrl"), ("fileUrl", "FileUrl"), ("FileUrl", "FileUrl"), ("auto_chapters_enabled", "AutoChaptersEnabled")],
    )
    def test_to_pascal_case(self, key, expected):
        assert to_pascal_case(key) == expected

    def test_to_snake_case(self):
        assert to_snake_case("TaskStatus") == "task_status"
        assert to_snake_case("taskKey") == "task_key"

    def test_pascalize_is_recursive(self):
        assert pascalize({"transcription": {"diarization": {"speaker_count": 2}}, "target_languages": ["en"]}) == {
            "Transcription": {"Diarization": {"SpeakerCount": 2}},
            "TargetLanguages": ["en"],
        }


class TestParseResponse:
    """Flattening SDK bodies into RemoteResponse."""

    def test_create_response(self):
        result = parse_response(sdk_response(TINGWU_CREATE_BODY))

        assert result.is_success
        assert result.request_id == "req-create-1"
        assert result.data["job_id"] == "job-1"
        assert result.data["status"] == "ONGOING"
        assert result.data["task_key"] == "task-key-1"

    def test_completed_response_keeps_known_artifacts(self):
        result = parse_response(sdk_response(TINGWU_COMPLETED_BODY))

        assert result.data["status"] == "COMPLETED"
        assert result.data["result_refs"] == {
            "transcription": "https://results.example.com/job-1/transcription.json",
            "auto_chapters": "https://results.example.com/job-1/chapters.json",
        }
        assert "result" not in result.data

    def test_error_response(self):
        result = parse_response(TINGWU_ERROR_BODY)

        assert not result.is_success
        assert result.code == "BRK.InvalidAppKey"
        assert result.message == "Invalid app key"
        assert result.data == {}

    def test_camel_case_body(self):
        result = parse_response(
            {"code": "0", "requestId": "r", "data": {"taskId": "t", "taskStatus": "FAILED", "errorMessage": "bad audio"}}
        )

        assert result.data["job_id"] == "t"
        assert result.data["error_message"] == "bad audio"

    def test_unexpected_body_type(self):
        with pytest.raises(TypeError):
            parse_response(SimpleNamespace(body=42))


class TestConstruction:
    """Configuration checks."""

    def test_missing_app_key(self, credentials):
        with pytest.raises(ConfigurationError) as exc_info:
            TingwuClient(credentials, app_key=None)
        assert exc_info.value.data["missing"] == ["TINGWU_APP_KEY"]

    def test_missing_credentials(self):
        with pytest.raises(ConfigurationError) as exc_info:
            TingwuClient(TingwuCredentials(), app_key="key")
        assert exc_info.value.data["missing"] == ["ALIYUN_ACCESS_KEY_ID", "ALIYUN_ACCESS_KEY_SECRET"]

    def test_from_config(self, monkeypatch):
        monkeypatch.setenv("ALIYUN_ACCESS_KEY_ID", "id")
        monkeypatch.setenv("ALIYUN_ACCESS_KEY_SECRET", "secret")
        config = Config(tingwu_app_key="app", tingwu_region_id="cn-shanghai")

        client = TingwuClient.from_config(config)

        assert client.app_key == "app"
        assert client.region_id == "cn-shanghai"
        assert client.get_provider_name() == "Alibaba Cloud Tingwu"

    def test_from_config_without_credentials(self):
        with pytest.raises(ConfigurationError):
            TingwuClient.from_config(Config(tingwu_app_key="app"))

    def test_sdk_client_is_created_lazily(self, client):
        with patch.object(TingwuClient, "_create_client", return_value=Mock()) as create:
            assert client._client is None
            first = client.client
            second = client.client
        assert first is second
        create.assert_called_once()


class TestBuildRequest:
    """CreateTask request maps."""

    def test_defaults_are_merged(self, client):
        request = client.build_task_request_map(
            "offline", {"file_url": "https://example.com/a.mp3"}, {"summarization_enabled": True}
        )

        assert request["AppKey"] == "test-app-key"
        assert request["Type"] == "offline"
        assert request["Input"] == {"SourceLanguage": "cn", "FileUrl": "https://example.com/a.mp3"}
        assert request["Parameters"]["SummarizationEnabled"] is True
        assert request["Parameters"]["AutoChaptersEnabled"] is DEFAULT_PARAMETERS["AutoChaptersEnabled"]
        assert "Operation" not in request

    def test_stop_operation(self, client):
        request = client.build_task_request_map("realtime", {"task_id": "job-9"}, {}, operation="stop")

        assert request["Operation"] == "stop"
        assert request["Input"]["TaskId"] == "job-9"


class TestRemoteCalls:
    """SDK calls with the SDK mocked out."""

    @pytest.fixture
    def sdk(self, client):
        sdk_client = Mock()
        sdk_client.create_task_with_options_async = AsyncMock(return_value=sdk_response(TINGWU_CREATE_BODY))
        sdk_client.get_task_info_with_options_async = AsyncMock(return_value=sdk_response(TINGWU_COMPLETED_BODY))
        sdk_client.create_transcription_phrases_with_options_async = AsyncMock(
            return_value=sdk_response({"Code": "0", "Message": "ok", "Data": {"PhraseId": "ph-1"}})
        )
        client._client = sdk_client
        models = SimpleNamespace(
            CreateTaskRequest=FakeRequestModel, CreateTranscriptionPhrasesRequest=FakeRequestModel
        )
        with patch.object(TingwuClient, "_models", return_value=models), patch.object(
            TingwuClient, "_runtime", return_value="runtime"
        ):
            yield sdk_client

    @pytest.mark.asyncio
    async def test_submit_job(self, client, sdk):
        result = await client.submit_job("offline", {"file_url": "https://example.com/a.mp3"}, {})

        assert result.data["job_id"] == "job-1"
        request, headers, runtime = sdk.create_task_with_options_async.await_args.args
        assert request.map["Input"]["FileUrl"] == "https://example.com/a.mp3"
        assert headers == {}
        assert runtime == "runtime"

    @pytest.mark.asyncio
    async def test_fetch_job_status(self, client, sdk):
        result = await client.fetch_job_status("job-1")

        assert result.data["status"] == "COMPLETED"
        assert sdk.get_task_info_with_options_async.await_args.args[0] == "job-1"

    @pytest.mark.asyncio
    async def test_create_named_word_list(self, client, sdk):
        result = await client.create_named_word_list("products", ["Tingwu", "通义"])

        assert result.data["phrase_id"] == "ph-1"
        request = sdk.create_transcription_phrases_with_options_async.await_args.args[0]
        assert request.map["Name"] == "products"
        assert json.loads(request.map["WordWeights"]) == {"Tingwu": 2, "通义": 2}
