"""Model gateway for the Generative Language REST API.

All model traffic goes through :class:`GeminiClient`. It exposes four
capabilities (generate once, generate as a stream, generate a structured
framework from a goal, list models) and keeps transport concerns (session
retries, timeouts, error decoding) out of the ingestion and compilation code.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union

import requests
from pydantic import ValidationError
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..domain.models import GeneratedFramework
from ..observability.metrics import GATEWAY_CALLS
from .errors import GatewayConfigError, GatewayError, StructuredOutputError
from .telemetry_sink import GatewayCall, record_event
from .model_router import FALLBACK_MODELS, ModelRouter

LOG = logging.getLogger("narrative.llm")

_TIMEOUT = (
    int(os.getenv("NARRATIVE_LLM_CONNECT_TIMEOUT", "5")),
    int(os.getenv("NARRATIVE_LLM_READ_TIMEOUT", "300")),
)


@dataclass(frozen=True)
class TextPart:
    text: str


@dataclass(frozen=True)
class InlinePart:
    """Binary media sent inline; ``data`` is base64 text."""

    mime_type: str
    data: str


Part = Union[TextPart, InlinePart]
Contents = Union[str, Sequence[Part]]


FRAMEWORK_PROMPT = """
You are an expert in Systemic Functional Linguistics (SFL) applied to Prompt Engineering.
Analyze the user's goal: "{goal}".

Construct a robust SFL framework for this request.
Return strictly a JSON object with this structure:
{{
  "title": "A short poetic title for this prompt",
  "field": {{ "topic": "", "taskType": "", "domainSpecifics": "", "keywords": "" }},
  "tenor": {{ "aiPersona": "", "targetAudience": ["string"], "desiredTone": "", "interpersonalStance": "" }},
  "mode": {{ "outputFormat": "", "rhetoricalStructure": "", "lengthConstraint": "", "textualDirectives": "" }}
}}
"""


def _build_session() -> requests.Session:
    session = requests.Session()
    retry = Retry(
        total=2,
        backoff_factor=0.5,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=frozenset(["POST", "GET"]),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry, pool_connections=10, pool_maxsize=10)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def to_request_parts(contents: Contents) -> List[Dict[str, Any]]:
    if isinstance(contents, str):
        return [{"text": contents}]
    parts: List[Dict[str, Any]] = []
    for part in contents:
        if isinstance(part, TextPart):
            parts.append({"text": part.text})
        elif isinstance(part, InlinePart):
            parts.append({"inlineData": {"mimeType": part.mime_type, "data": part.data}})
        else:
            raise TypeError(f"Unsupported content part: {type(part).__name__}")
    return parts


def extract_text(payload: Dict[str, Any]) -> str:
    """Concatenate the text parts of the first candidate."""
    candidates = payload.get("candidates") or []
    if not candidates:
        return ""
    content = candidates[0].get("content") or {}
    texts = [p.get("text") for p in content.get("parts") or [] if isinstance(p, dict) and p.get("text")]
    return "".join(texts)


def error_from_response(resp: requests.Response, model: str) -> GatewayError:
    message = (resp.text or "")[:500]
    provider_status: Optional[str] = None
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        err = body["error"]
        message = str(err.get("message") or message)
        provider_status = err.get("status")
    return GatewayError(
        f"{model} returned HTTP {resp.status_code}: {message}",
        http_status=resp.status_code,
        provider_status=provider_status,
    )


def is_token_limit_error(exc: BaseException) -> bool:
    """True when the provider rejected the request for exceeding the model's input size."""
    if not isinstance(exc, GatewayError):
        return False
    if exc.http_status == 413:
        return True
    if exc.http_status == 400 and exc.provider_status == "INVALID_ARGUMENT":
        return "token" in str(exc).lower()
    return False


def _track(capability: str, model: str, outcome: str, http_status: Optional[int] = None) -> None:
    GATEWAY_CALLS.labels(capability=capability, outcome=outcome).inc()
    record_event(GatewayCall(capability=capability, model=model, outcome=outcome, http_status=http_status))


def decode_framework(text: str) -> GeneratedFramework:
    try:
        return GeneratedFramework.model_validate_json(text)
    except ValidationError as exc:
        raise StructuredOutputError(f"Malformed framework response: {exc.errors()[0].get('msg')}") from exc


class GeminiClient:
    def __init__(
        self,
        router: Optional[ModelRouter] = None,
        session: Optional[requests.Session] = None,
        timeout: Optional[tuple] = None,
    ) -> None:
        self.router = router or ModelRouter()
        self._session = session or _build_session()
        self._timeout = timeout or _TIMEOUT

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    def _headers(self) -> Dict[str, str]:
        key = self.router.api_key()
        if not key:
            raise GatewayConfigError("Gemini API key is not configured. Set GEMINI_API_KEY.")
        return {"Content-Type": "application/json", "x-goog-api-key": key}

    def _post(
        self,
        model: str,
        method: str,
        payload: Dict[str, Any],
        capability: str,
        *,
        stream: bool = False,
    ) -> requests.Response:
        headers = self._headers()
        url = f"{self.router.base_url()}/models/{model}:{method}"
        params = {"alt": "sse"} if stream else None
        LOG.debug("gemini_request", extra={"model": model, "capability": capability, "stream": stream})
        try:
            resp = self._session.post(
                url,
                json=payload,
                headers=headers,
                params=params,
                timeout=self._timeout,
                stream=stream,
            )
        except requests.exceptions.RequestException as exc:
            _track(capability, model, "error")
            raise GatewayError(f"Request to {model} failed: {exc}") from exc
        if resp.status_code >= 400:
            err = error_from_response(resp, model)
            _track(capability, model, "error", err.http_status)
            resp.close()
            LOG.warning("gemini_request_failed", extra={"model": model, "status": err.http_status, "err": str(err)})
            raise err
        _track(capability, model, "ok", resp.status_code)
        return resp

    @staticmethod
    def _json(resp: requests.Response, model: str) -> Dict[str, Any]:
        try:
            data = resp.json()
        except ValueError as exc:
            raise GatewayError(f"{model} returned a non-JSON response") from exc
        return data if isinstance(data, dict) else {}

    # ------------------------------------------------------------------
    # Capabilities
    # ------------------------------------------------------------------
    def generate_once(self, contents: Contents, model: Optional[str] = None) -> str:
        resolved = self.router.model_for("default", model)
        payload = {"contents": [{"role": "user", "parts": to_request_parts(contents)}]}
        resp = self._post(resolved, "generateContent", payload, "generate")
        return extract_text(self._json(resp, resolved))

    def generate_stream(self, contents: Contents, model: Optional[str] = None) -> Iterator[str]:
        """Yield text chunks as they arrive. Each call issues a fresh request."""
        resolved = self.router.model_for("default", model)
        payload = {"contents": [{"role": "user", "parts": to_request_parts(contents)}]}
        with self._post(resolved, "streamGenerateContent", payload, "stream", stream=True) as resp:
            for raw_line in resp.iter_lines():
                if not raw_line:
                    continue
                line = raw_line.decode("utf-8") if isinstance(raw_line, bytes) else raw_line
                if not line.startswith("data:"):
                    continue
                data = line[5:].strip()
                if not data:
                    continue
                try:
                    parsed = json.loads(data)
                except json.JSONDecodeError:
                    LOG.debug("gemini_stream_skip_line", extra={"line": data[:120]})
                    continue
                chunk = extract_text(parsed)
                if chunk:
                    yield chunk

    def generate_json(
        self,
        contents: Contents,
        schema: Optional[Dict[str, Any]] = None,
        model: Optional[str] = None,
    ) -> str:
        """Run a JSON-mode generation and return the raw JSON text (possibly empty)."""
        resolved = self.router.model_for("default", model)
        config: Dict[str, Any] = {"responseMimeType": "application/json"}
        if schema:
            config["responseSchema"] = schema
        payload = {
            "contents": [{"role": "user", "parts": to_request_parts(contents)}],
            "generationConfig": config,
        }
        resp = self._post(resolved, "generateContent", payload, "structured")
        return extract_text(self._json(resp, resolved))

    def generate_structured(self, goal: str, model: Optional[str] = None) -> Optional[GeneratedFramework]:
        text = self.generate_json(FRAMEWORK_PROMPT.format(goal=goal), model=self.router.model_for("framework", model))
        if not text.strip():
            return None
        return decode_framework(text)

    def list_models(self) -> List[str]:
        """Return generateContent-capable model ids; degrades to ``FALLBACK_MODELS``."""
        try:
            headers = self._headers()
            models: List[str] = []
            page_token: Optional[str] = None
            while True:
                params: Dict[str, Any] = {"pageSize": 100}
                if page_token:
                    params["pageToken"] = page_token
                resp = self._session.get(
                    f"{self.router.base_url()}/models",
                    headers=headers,
                    params=params,
                    timeout=self._timeout,
                )
                resp.raise_for_status()
                data = resp.json()
                for entry in data.get("models") or []:
                    if "generateContent" not in (entry.get("supportedGenerationMethods") or []):
                        continue
                    name = str(entry.get("name") or "")
                    if name.startswith("models/"):
                        name = name[len("models/"):]
                    if name and name not in models:
                        models.append(name)
                page_token = data.get("nextPageToken")
                if not page_token:
                    break
            _track("list_models", "*", "ok")
            return models or list(FALLBACK_MODELS)
        except Exception as exc:
            _track("list_models", "*", "fallback")
            LOG.warning("gemini_list_models_failed", extra={"err": str(exc)})
            return list(FALLBACK_MODELS)
