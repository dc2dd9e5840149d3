"""Alibaba Cloud Tingwu implementation of the remote task client.

The vendor SDK speaks PascalCase maps (``{"Input": {"FileUrl": ...}}``).
Callers may pass job input and parameters in snake_case or camelCase; keys
are converted before the request is built, and responses are flattened into
``RemoteResponse`` payloads using this package's snake_case conventions.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Mapping, Optional

from ..config.secure_config import TingwuCredentials, require_credentials
from ..exceptions import ConfigurationError
from ..models.task import ArtifactKind, RemoteResponse
from .base import RemoteTaskClient

logger = logging.getLogger(__name__)

DEFAULT_REGION_ID = "cn-beijing"
DEFAULT_ENDPOINT = "tingwu.cn-beijing.aliyuncs.com"
DEFAULT_SOURCE_LANGUAGE = "cn"
DEFAULT_WORD_WEIGHT = 2

# Feature toggles sent with every job unless the caller overrides them
DEFAULT_PARAMETERS: Dict[str, Any] = {
    "AutoChaptersEnabled": True,
    "ContentExtractionEnabled": False,
    "CustomPromptEnabled": False,
    "IdentityRecognitionEnabled": False,
    "MeetingAssistanceEnabled": False,
    "PptExtractionEnabled": False,
    "ServiceInspectionEnabled": False,
    "SummarizationEnabled": False,
    "TextPolishEnabled": False,
    "TranslationEnabled": False,
}

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def to_pascal_case(key: str) -> str:
    """Convert ``file_url`` / ``fileUrl`` / ``FileUrl`` to ``FileUrl``."""
    if "_" in key:
        return "".join(part[:1].upper() + part[1:] for part in key.split("_") if part)
    return key[:1].upper() + key[1:]


def to_snake_case(key: str) -> str:
    """Convert ``TaskStatus`` / ``taskStatus`` to ``task_status``."""
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def pascalize(value: Any) -> Any:
    """Recursively convert mapping keys to PascalCase."""
    if isinstance(value, Mapping):
        return {to_pascal_case(str(k)): pascalize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [pascalize(v) for v in value]
    return value


def _lookup(data: Optional[Mapping[str, Any]], name: str) -> Any:
    """Read ``name`` from a vendor map regardless of key casing."""
    if not data:
        return None
    for key in (name, to_pascal_case(name), name[:1].lower() + to_pascal_case(name)[1:]):
        if key in data:
            return data[key]
    return None


def _body_to_map(response: Any) -> Dict[str, Any]:
    body = getattr(response, "body", response)
    if body is None:
        return {}
    if hasattr(body, "to_map"):
        return body.to_map() or {}
    if isinstance(body, Mapping):
        return dict(body)
    raise TypeError(f"Unexpected Tingwu response body: {type(body).__name__}")


def parse_response(response: Any) -> RemoteResponse:
    """Flatten an SDK response into a RemoteResponse.

    Job payloads become ``{"job_id", "status", "result_refs", "error_message"}``
    plus any other vendor fields in snake_case.
    """
    body = _body_to_map(response)
    data = _lookup(body, "data") or {}

    payload: Dict[str, Any] = {}
    if isinstance(data, Mapping):
        for key, value in data.items():
            payload[to_snake_case(str(key))] = value

        job_id = _lookup(data, "taskId")
        if job_id is not None:
            payload["job_id"] = job_id
        status = _lookup(data, "taskStatus")
        if status is not None:
            payload["status"] = status
        error_message = _lookup(data, "errorMessage")
        if error_message is not None:
            payload["error_message"] = error_message

        result = _lookup(data, "result")
        if isinstance(result, Mapping):
            refs = {}
            for key, url in result.items():
                kind = ArtifactKind.parse(key)
                if kind is not None and url:
                    refs[kind.value] = url
            payload["result_refs"] = refs or None
            payload.pop("result", None)

    code = _lookup(body, "code")
    return RemoteResponse(
        code="" if code is None else str(code),
        message=_lookup(body, "message") or "",
        request_id=_lookup(body, "requestId"),
        data=payload,
    )


class TingwuClient(RemoteTaskClient):
    """Remote task client backed by the ``alibabacloud-tingwu20230930`` SDK."""

    def __init__(
        self,
        credentials: TingwuCredentials,
        app_key: Optional[str],
        region_id: str = DEFAULT_REGION_ID,
        endpoint: str = DEFAULT_ENDPOINT,
        default_parameters: Optional[Mapping[str, Any]] = None,
    ):
        """Initialize the client.

        Args:
            credentials: Alibaba Cloud access key pair
            app_key: Tingwu application key jobs are billed to
            region_id: Service region
            endpoint: API endpoint host
            default_parameters: Feature toggles merged under every job's parameters

        Raises:
            ConfigurationError: If the credentials or app key are missing
        """
        missing = credentials.missing_keys()
        if not app_key:
            missing.append("TINGWU_APP_KEY")
        if missing:
            raise ConfigurationError(
                f"Missing Tingwu configuration: {', '.join(missing)}", data={"missing": missing}
            )

        self.credentials = credentials
        self.app_key = app_key
        self.region_id = region_id
        self.endpoint = endpoint
        self.default_parameters = dict(DEFAULT_PARAMETERS if default_parameters is None else default_parameters)
        self._client = None

    @classmethod
    def from_config(cls, config, credentials: Optional[TingwuCredentials] = None) -> "TingwuClient":
        """Build a client from a ``Config``, loading credentials from the environment if needed."""
        return cls(
            credentials=credentials or require_credentials(),
            app_key=config.tingwu_app_key,
            region_id=config.tingwu_region_id,
            endpoint=config.tingwu_endpoint,
        )

    def get_provider_name(self) -> str:
        return "Alibaba Cloud Tingwu"

    # ---------------------- SDK plumbing ----------------------
    def _create_client(self):
        """Create the SDK client.

        The SDK is imported lazily so the package imports without the
        ``tingwu`` extra installed.
        """
        from alibabacloud_tea_openapi import models as open_api_models  # type: ignore
        from alibabacloud_tingwu20230930.client import Client  # type: ignore

        sdk_config = open_api_models.Config(
            access_key_id=self.credentials.access_key_id.get_secret_value(),
            access_key_secret=self.credentials.access_key_secret.get_secret_value(),
            region_id=self.region_id,
            endpoint=self.endpoint,
        )
        return Client(sdk_config)

    @property
    def client(self):
        if self._client is None:
            self._client = self._create_client()
        return self._client

    @staticmethod
    def _runtime():
        from alibabacloud_tea_util import models as util_models  # type: ignore

        return util_models.RuntimeOptions()

    @staticmethod
    def _models():
        from alibabacloud_tingwu20230930 import models as tingwu_models  # type: ignore

        return tingwu_models

    def build_task_request_map(
        self,
        task_type: str,
        input: Dict[str, Any],
        parameters: Dict[str, Any],
        operation: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Assemble the PascalCase CreateTask request map."""
        request_input = {"SourceLanguage": DEFAULT_SOURCE_LANGUAGE}
        request_input.update(pascalize(input))
        request_parameters = dict(self.default_parameters)
        request_parameters.update(pascalize(parameters or {}))

        request: Dict[str, Any] = {
            "AppKey": self.app_key,
            "Type": task_type,
            "Input": request_input,
            "Parameters": request_parameters,
        }
        if operation:
            request["Operation"] = operation
        return request

    # ---------------------- RemoteTaskClient ----------------------
    async def submit_job(
        self,
        task_type: str,
        input: Dict[str, Any],
        parameters: Dict[str, Any],
        operation: Optional[str] = None,
    ) -> RemoteResponse:
        request_map = self.build_task_request_map(task_type, input, parameters, operation)
        request = self._models().CreateTaskRequest().from_map(request_map)
        logger.debug(f"Submitting Tingwu {task_type} task (operation={operation})")

        response = await self.client.create_task_with_options_async(request, {}, self._runtime())
        result = parse_response(response)
        logger.info(
            f"Tingwu task submitted (type: {task_type}, job_id: {result.data.get('job_id', 'unknown')}, "
            f"code: {result.code})"
        )
        return result

    async def fetch_job_status(self, job_id: str) -> RemoteResponse:
        response = await self.client.get_task_info_with_options_async(job_id, {}, self._runtime())
        result = parse_response(response)
        logger.debug(f"Tingwu task {job_id} status: {result.data.get('status')}")
        return result

    async def create_named_word_list(self, name: str, words: List[str]) -> RemoteResponse:
        word_weights = {word: DEFAULT_WORD_WEIGHT for word in words}
        request = self._models().CreateTranscriptionPhrasesRequest().from_map(
            {"Name": name, "WordWeights": json.dumps(word_weights, ensure_ascii=False)}
        )
        response = await self.client.create_transcription_phrases_with_options_async(
            request, {}, self._runtime()
        )
        return parse_response(response)
