"""
External reasoning service client

The reasoning service is an opaque oracle: it receives candidates, metrics
and options and returns per-candidate raw scores. It is treated as
unreliable, so every failure is mapped to one distinct error kind and the
call is never retried.
"""
import json
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from core.config import get_settings
from core.logging import get_logger
from core.metrics import reasoning_duration, reasoning_requests, record_error
from d5_scoring.schemas import RankingRequest, ReasoningResult

from .exceptions import EmptyResponseError, NetworkError, ParseError, ReasoningServiceError, UpstreamError

PROVIDER = "openai"

SYSTEM_PROMPT = "You are a precise scoring agent. Output strict JSON only. No prose, no markdown."

RESULT_CONTRACT = (
    'Return STRICT JSON: {"items":[{"id":"string","score":0..1,"contrib":{"<metric key>":0..1},'
    '"tier":"<tier label>","reason":"<=200 chars","main_reason":"string",'
    '"reasons":{"<metric key>":"string"},"sources":[{"url":"string","title":"string"}],'
    '"risk_notes":["string"]}],"meta":{"confidence":"A|B|C"}}'
)

STRICTNESS_HINTS = {
    "lenient": "Give candidates the benefit of the doubt when evidence is thin.",
    "balanced": "Weigh evidence evenly and avoid extreme scores without support.",
    "strict": "Only award high scores with clear supporting evidence.",
}

SEARCH_DEPTH_HINTS = {
    "shallow": "Use at most one quick search per candidate.",
    "normal": "Search as needed and cite 1-3 reliable sources.",
    "deep": "Research thoroughly and cite the 3 most reliable sources.",
}


def build_payload(request: RankingRequest, use_web: bool) -> Dict[str, Any]:
    """Request body sent to the reasoning service (formula metrics are computed locally)"""
    return {
        "candidates": [c.model_dump(exclude_none=True) for c in request.candidates],
        "metrics": [
            {
                "key": m.key,
                "label": m.label,
                "type": m.type.value,
                "direction": m.direction.value,
                "weight": m.weight,
                **({"note": m.note} if m.note else {}),
            }
            for m in request.raw_metrics
        ],
        "use_web_search": use_web,
    }


def build_instructions(request: RankingRequest, use_web: bool) -> List[str]:
    options = request.options
    lines = [
        "Compute normalized scores in [0,1] for every candidate on every metric.",
        STRICTNESS_HINTS[options.strictness.value],
    ]
    if options.tiers:
        lines.append(f"Use only these tier labels, best first: {', '.join(options.tiers)}.")
    if use_web:
        lines.append(SEARCH_DEPTH_HINTS[options.search_depth.value])
    return lines


def extract_output_text(body: Dict[str, Any]) -> Optional[str]:
    """Model text from a Responses API body: ``output_text`` or the first output_text content part"""
    text = body.get("output_text")
    if isinstance(text, str) and text.strip():
        return text

    for output in body.get("output") or []:
        if not isinstance(output, dict):
            continue
        for part in output.get("content") or []:
            if isinstance(part, dict) and part.get("type") == "output_text":
                text = part.get("text")
                if isinstance(text, str) and text.strip():
                    return text
    return None


def strip_code_fence(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def parse_result(text: str, provider: str = PROVIDER) -> ReasoningResult:
    """
    Parse model output into a ReasoningResult

    Raises:
        ParseError: If the text is not a JSON object of the expected shape
        EmptyResponseError: If it contains no items
    """
    try:
        data = json.loads(strip_code_fence(text))
    except (json.JSONDecodeError, ValueError) as e:
        raise ParseError(provider, f"Output is not valid JSON: {e}", raw=text) from e

    if not isinstance(data, dict):
        raise ParseError(provider, "Output is not a JSON object", raw=text)

    try:
        result = ReasoningResult.model_validate(data)
    except PydanticValidationError as e:
        raise ParseError(provider, f"Output has an unexpected shape: {e.error_count()} issues", raw=text) from e

    if not result.items:
        raise EmptyResponseError(provider, "no_items", raw=text)
    return result


class ReasoningService(ABC):
    """Narrow interface to the reasoning oracle: request in, result or error out"""

    @abstractmethod
    async def score(self, request: RankingRequest, use_web: bool = False) -> ReasoningResult:
        """
        Score every candidate on every non-formula metric

        Raises:
            ReasoningServiceError: On any failure calling or reading the service
        """


class StaticReasoningService(ReasoningService):
    """Replays a saved result; used in stub mode and for offline re-ranking"""

    def __init__(self, result: ReasoningResult):
        self.result = result
        self.calls = 0

    async def score(self, request: RankingRequest, use_web: bool = False) -> ReasoningResult:
        self.calls += 1
        if not self.result.items:
            raise EmptyResponseError("static", "no_items")
        return self.result


class ReasoningClient(ReasoningService):
    """OpenAI Responses API client"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = get_settings()
        self.provider = PROVIDER
        self.logger = get_logger(f"gateway.{self.provider}", domain="d0")
        self.api_key = api_key or self.settings.get_api_key()
        self.base_url = base_url or self.settings.openai_base_url
        self.model = model or self.settings.openai_model

        # HTTP client with proper timeouts
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout or self.settings.request_timeout))

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.client.aclose()

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def build_body(self, request: RankingRequest, use_web: bool) -> Dict[str, Any]:
        """Responses API body; the web_search tool is attached only for admitted web requests"""
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": RESULT_CONTRACT},
            {"role": "user", "content": " ".join(build_instructions(request, use_web))},
            {"role": "user", "content": json.dumps(build_payload(request, use_web), ensure_ascii=False)},
        ]
        body: Dict[str, Any] = {"model": self.model, "input": messages}
        if use_web:
            body["tools"] = [{"type": "web_search"}]
        return body

    async def _post(self, body: Dict[str, Any]) -> httpx.Response:
        url = f"{self.base_url.rstrip('/')}/responses"
        try:
            return await self.client.post(url, json=body, headers=self._get_headers())
        except httpx.HTTPError as e:
            raise NetworkError(self.provider, f"Request failed: {e.__class__.__name__}", raw=str(e)) from e

    async def score(self, request: RankingRequest, use_web: bool = False) -> ReasoningResult:
        start_time = time.time()
        status = "success"
        try:
            response = await self._post(self.build_body(request, use_web))

            if response.status_code >= 400:
                raise UpstreamError(
                    self.provider,
                    f"HTTP {response.status_code}",
                    upstream_status=response.status_code,
                    raw=response.text,
                )

            try:
                body = response.json()
            except ValueError as e:
                raise ParseError(self.provider, "Response body is not JSON", raw=response.text) from e

            text = extract_output_text(body) if isinstance(body, dict) else None
            if not text:
                raise EmptyResponseError(self.provider, "Response contained no output text", raw=response.text)

            result = parse_result(text, self.provider)
            self.logger.info(
                f"Reasoning service returned {len(result.items)} items",
                extra={"model": self.model, "use_web": use_web},
            )
            return result

        except ReasoningServiceError as e:
            status = e.error_code.lower()
            record_error(e, domain="d0")
            self.logger.error(f"Reasoning service call failed: {e.message}", extra={"error_code": e.error_code})
            raise

        finally:
            reasoning_requests.labels(status=status).inc()
            reasoning_duration.observe(time.time() - start_time)
