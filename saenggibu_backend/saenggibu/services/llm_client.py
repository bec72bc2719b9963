from dataclasses import dataclass
from typing import Any

import requests
import structlog

from saenggibu.core.config import settings
from saenggibu.core.errors import EmptyResponse, ProviderError, ProviderNotConfigured

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ImagePayload:
    base64_data: str
    mime_type: str

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64_data}"


@dataclass(frozen=True)
class LLMResponse:
    content: str
    finish_reason: str | None
    model: str | None = None


class LLMClient:
    """Single-shot chat completion against an OpenAI-compatible endpoint.

    One attempt per call, no retry; re-running is the caller's decision.
    """

    def __init__(
        self,
        api_key: str | None,
        base_url: str,
        model: str,
        temperature: float = 0.1,
        max_output_tokens: int = 16000,
        timeout: int = 120,
        session: requests.Session | None = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.timeout = timeout
        self.session = session or requests.Session()

    def is_enabled(self) -> bool:
        return bool(self.api_key)

    def build_payload(
        self,
        system_prompt: str,
        user_text: str,
        image: ImagePayload | None = None,
    ) -> dict[str, Any]:
        if image is None:
            user_content: Any = user_text
        else:
            user_content = [
                {"type": "text", "text": user_text},
                {"type": "image_url", "image_url": {"url": image.data_url}},
            ]
        return {
            "model": self.model,
            "temperature": self.temperature,
            "response_format": {"type": "json_object"},
            "max_tokens": self.max_output_tokens,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content},
            ],
        }

    def complete(
        self,
        system_prompt: str,
        user_text: str,
        image: ImagePayload | None = None,
    ) -> LLMResponse:
        if not self.is_enabled():
            raise ProviderNotConfigured("OpenAI API 키가 설정되지 않았습니다.")

        payload = self.build_payload(system_prompt, user_text, image)
        logger.info(
            "llm_request",
            model=self.model,
            has_image=image is not None,
            prompt_chars=len(system_prompt) + len(user_text),
        )
        try:
            response = self.session.post(
                f"{self.base_url}/chat/completions",
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json=payload,
                timeout=self.timeout,
            )
        except requests.RequestException as error:
            logger.error("llm_request_failed", error=str(error))
            raise ProviderError(f"AI 요청 실패: {error}") from error

        if not response.ok:
            body = response.text
            logger.error("llm_request_rejected", status=response.status_code, body=body[:500])
            raise ProviderError(
                f"OpenAI API 오류 ({response.status_code}): {body}",
                upstream_status=response.status_code,
                body=body,
            )

        try:
            data = response.json()
        except ValueError as error:
            raise ProviderError("AI 응답이 JSON 형식이 아닙니다.", response.status_code, response.text) from error
        if not isinstance(data, dict):
            raise ProviderError("AI 응답 형식이 올바르지 않습니다.", response.status_code, response.text)

        choices = data.get("choices") or []
        choice = choices[0] if choices else {}
        content = (choice.get("message") or {}).get("content")
        finish_reason = choice.get("finish_reason")
        if not content:
            raise EmptyResponse("OpenAI 응답이 비어있습니다.")

        if finish_reason == "length":
            logger.warning("llm_output_truncated", max_tokens=self.max_output_tokens, chars=len(content))
        logger.info("llm_response", finish_reason=finish_reason, chars=len(content))
        return LLMResponse(content=content, finish_reason=finish_reason, model=data.get("model"))


def get_llm_client() -> LLMClient:
    return LLMClient(
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
        model=settings.ai_chat_model,
        temperature=settings.ai_temperature,
        max_output_tokens=settings.ai_max_output_tokens,
        timeout=settings.ai_http_timeout_seconds,
    )
