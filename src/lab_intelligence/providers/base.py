# ============================================================================
# src/lab_intelligence/providers/base.py
# ============================================================================
"""
Base Analysis Provider

Defines the contract every analysis provider implements:

    analyze(document_text, patient_context, prior_findings, timeout)
        -> ProviderAnalysisResult

Subclasses only describe their HTTP request and where the model's text
lives in the response. The base class owns the HTTP session, the per-call
deadline, JSON recovery and the strict schema parse.

Failure mapping:
- deadline exceeded          -> ProviderTimeoutError
- network / non-200 status   -> ProviderTransportError
- no JSON / schema mismatch  -> ProviderResponseError
Cancellation is never caught; it propagates to the caller.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple, Type
import asyncio
import logging
import json
import time

import aiohttp
from json_repair import repair_json
from pydantic import ValidationError

from ..config import provider_settings
from ..core.context import PatientContext, ProviderAnalysisResult
from ..utils.exceptions import (
    ProviderResponseError,
    ProviderTimeoutError,
    ProviderTransportError,
)
from .schemas import AnalysisPayload


class AnalysisProvider(ABC):
    """
    Abstract base class for analysis providers.

    Config options (all optional):
        api_key, base_url, model, timeout, temperature, max_tokens
    """

    provider_id: str = "provider"
    analysis_type: str = "analysis"
    payload_schema: Type[AnalysisPayload] = AnalysisPayload

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self.logger = logging.getLogger(self.__class__.__name__)

        self.api_key = self.config.get('api_key', '')
        self.base_url = self.config.get('base_url', '').rstrip('/')

        # Statistics
        self._call_count = 0
        self._failure_count = 0
        self._total_time = 0.0

        # HTTP session (created lazily, tied to event loop)
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_loop: Optional[asyncio.AbstractEventLoop] = None
        self._session_lock: Optional[asyncio.Lock] = None
        self._lock_loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the model identifier."""
        pass

    @property
    @abstractmethod
    def default_timeout(self) -> float:
        """Seconds allowed for one call when the caller gives none."""
        pass

    @abstractmethod
    def build_prompts(
        self,
        document_text: str,
        patient_context: Optional[PatientContext],
        prior_findings: Optional[ProviderAnalysisResult],
        document_type: str = "unknown",
    ) -> Tuple[str, str]:
        """Return (system prompt, user prompt)."""
        pass

    @abstractmethod
    def build_request(self, system_prompt: str, user_prompt: str) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
        """Return (url, headers, JSON body) for one call."""
        pass

    @abstractmethod
    def extract_content(self, data: Dict[str, Any]) -> str:
        """Pull the model's text out of a decoded response body."""
        pass

    def response_extras(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Fields the API returns outside the model text (e.g. citations)."""
        return {}

    # ------------------------------------------------------------------
    # HTTP session
    # ------------------------------------------------------------------

    def _get_lock(self) -> asyncio.Lock:
        current_loop = asyncio.get_running_loop()
        if self._session_lock is None or self._lock_loop is not current_loop:
            self._session_lock = asyncio.Lock()
            self._lock_loop = current_loop
        return self._session_lock

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the HTTP session for the current event loop."""
        async with self._get_lock():
            current_loop = asyncio.get_running_loop()

            needs_new_session = (
                self._session is None
                or self._session.closed
                or self._session_loop is not current_loop
            )

            if needs_new_session:
                if self._session is not None and not self._session.closed:
                    try:
                        await self._session.close()
                    except (aiohttp.ClientError, RuntimeError) as e:
                        self.logger.debug(f"Ignoring error closing stale session: {e}")

                # Overall deadline is enforced per call with wait_for
                timeout = aiohttp.ClientTimeout(
                    total=None,
                    sock_connect=provider_settings.SOCK_CONNECT_TIMEOUT,
                )
                self._session = aiohttp.ClientSession(timeout=timeout)
                self._session_loop = current_loop

            return self._session

    async def close(self):
        """Close HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
        self._session_loop = None

    async def post_json(self, url: str, headers: Dict[str, str], body: Dict[str, Any]) -> Dict[str, Any]:
        session = await self._get_session()
        async with session.post(url, headers=headers, json=body) as response:
            if response.status != 200:
                error_text = await response.text()
                raise ProviderTransportError(
                    f"{self.provider_id} returned HTTP {response.status}: {error_text[:200]}",
                    self.provider_id,
                    status=response.status,
                )
            try:
                return await response.json(content_type=None)
            except (json.JSONDecodeError, aiohttp.ContentTypeError) as e:
                raise ProviderResponseError(
                    f"{self.provider_id} response body is not JSON: {e}", self.provider_id
                ) from e

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    async def analyze(
        self,
        document_text: str,
        patient_context: Optional[PatientContext] = None,
        prior_findings: Optional[ProviderAnalysisResult] = None,
        timeout: Optional[float] = None,
        document_type_hint: str = "unknown",
    ) -> ProviderAnalysisResult:
        """
        Run one analysis call with its own deadline.

        Args:
            document_text: Textual description of the extracted document
            patient_context: Age, sex, conditions, medications
            prior_findings: Primary result, when it was ready in time
            timeout: Seconds for this call (defaults to default_timeout)
            document_type_hint: Locally detected type, used unless the
                provider reports its own

        Raises:
            ProviderError subclasses; asyncio.CancelledError propagates.
        """
        timeout = timeout if timeout is not None else self.default_timeout
        start_time = time.monotonic()
        self._call_count += 1

        try:
            system_prompt, user_prompt = self.build_prompts(
                document_text, patient_context, prior_findings, document_type_hint
            )
            url, headers, body = self.build_request(system_prompt, user_prompt)

            data = await asyncio.wait_for(self.post_json(url, headers, body), timeout=timeout)

            payload = self.parse_payload(self.extract_content(data), self.response_extras(data))

        except asyncio.TimeoutError:
            self._failure_count += 1
            self.logger.error(f"{self.provider_id} timed out after {timeout}s (model={self.model_name})")
            raise ProviderTimeoutError(self.provider_id, timeout)
        except aiohttp.ClientError as e:
            self._failure_count += 1
            self.logger.error(f"{self.provider_id} transport failure: {e}")
            raise ProviderTransportError(str(e), self.provider_id) from e
        except (ProviderTransportError, ProviderResponseError):
            self._failure_count += 1
            raise

        processing_time = time.monotonic() - start_time
        self._total_time += processing_time

        document_type = self.resolve_document_type(payload, prior_findings, document_type_hint)
        result = payload.to_result(
            provider_id=self.provider_id,
            analysis_type=self.analysis_type,
            document_type=document_type,
            processing_time=processing_time,
        )

        self.logger.info(
            f"{self.provider_id} finished in {processing_time:.2f}s "
            f"(urgency={result.urgency_level.value}, confidence={result.confidence:.2f})"
        )
        return result

    def resolve_document_type(
        self,
        payload: AnalysisPayload,
        prior_findings: Optional[ProviderAnalysisResult],
        hint: str,
    ) -> str:
        if prior_findings is not None:
            return prior_findings.document_type
        return hint

    # ------------------------------------------------------------------
    # Payload parsing
    # ------------------------------------------------------------------

    def extract_json(self, response_text: str) -> Optional[Dict]:
        """
        Extract a JSON object from generated text.

        Models sometimes wrap the object in prose or emit single quotes
        and trailing commas. json_repair fixes syntax only; missing or
        invalid fields are still rejected by the schema.
        """
        if not response_text or not response_text.strip():
            self.logger.warning(f"{self.provider_id}: empty response text")
            return None

        try:
            parsed = json.loads(response_text.strip())
            if isinstance(parsed, dict):
                return parsed
        except json.JSONDecodeError:
            pass

        start_idx = response_text.find('{')
        end_idx = response_text.rfind('}')
        candidates = [response_text]
        if start_idx != -1 and end_idx > start_idx:
            candidates.insert(0, response_text[start_idx:end_idx + 1])

        for candidate in candidates:
            try:
                repaired = repair_json(candidate, return_objects=True)
            except (ValueError, TypeError, RecursionError) as e:
                self.logger.debug(f"json_repair failed: {e}")
                continue
            if isinstance(repaired, dict) and repaired:
                self.logger.debug(f"{self.provider_id}: json_repair fixed response")
                return repaired

        self.logger.warning(f"Could not parse JSON from response: {response_text[:200]}...")
        return None

    def parse_payload(self, content: str, extras: Optional[Dict[str, Any]] = None) -> AnalysisPayload:
        """Strict parse; anything that does not fit the schema fails closed."""
        data = self.extract_json(content)
        if data is None:
            raise ProviderResponseError(f"{self.provider_id} returned no JSON object", self.provider_id)

        for key, value in (extras or {}).items():
            if value and not data.get(key):
                data[key] = value

        try:
            return self.payload_schema.model_validate(data)
        except ValidationError as e:
            raise ProviderResponseError(
                f"{self.provider_id} payload failed validation: {e.error_count()} error(s)",
                self.provider_id,
            ) from e

    def get_statistics(self) -> Dict[str, Any]:
        succeeded = self._call_count - self._failure_count
        return {
            "provider": self.provider_id,
            "model": self.model_name,
            "call_count": self._call_count,
            "failure_count": self._failure_count,
            "total_time": self._total_time,
            "average_time": self._total_time / succeeded if succeeded > 0 else 0.0,
        }
