"""이미지 생성 프로바이더 클라이언트.

Replicate 호환 prediction API를 httpx로 호출한다.
`Prefer: wait`로 동기 응답을 먼저 기다리고, 아직 끝나지 않았으면
urls.get을 폴링한다. 반환값은 prediction 원본(dict)이며
결과 URL 추출은 processor.provider_response가 담당한다.
"""

import time
from typing import Any, Protocol

import httpx
from loguru import logger

from core.config import Settings
from core.exceptions import NotConfigured, ProviderError

TERMINAL_STATUSES = {"succeeded", "failed", "canceled"}


class GenerationProvider(Protocol):
    def generate(
        self,
        source_url: str,
        instruction: str,
        aspect_ratio: str = "match_input_image",
        correlation_id: str | None = None,
    ) -> Any: ...


class ReplicateProvider:
    def __init__(
        self,
        api_token: str,
        model: str,
        base_url: str = "https://api.replicate.com",
        timeout: float = 120.0,
        poll_interval: float = 1.0,
        transport: httpx.BaseTransport | None = None,
    ):
        if not api_token:
            raise NotConfigured("이미지 생성 API 토큰이 설정되지 않았습니다")
        self.api_token = api_token
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "ReplicateProvider":
        return cls(
            api_token=settings.PROVIDER_API_TOKEN,
            model=settings.PROVIDER_MODEL,
            base_url=settings.PROVIDER_BASE_URL,
            timeout=settings.PROVIDER_TIMEOUT_SECONDS,
            poll_interval=settings.PROVIDER_POLL_INTERVAL_SECONDS,
        )

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            headers={"Authorization": f"Bearer {self.api_token}"},
            timeout=self.timeout,
            transport=self.transport,
        )

    def generate(
        self,
        source_url: str,
        instruction: str,
        aspect_ratio: str = "match_input_image",
        correlation_id: str | None = None,
    ) -> Any:
        body = {
            "input": {
                "input_image": source_url,
                "prompt": instruction,
                "aspect_ratio": aspect_ratio,
                "output_format": "png",
            }
        }
        deadline = time.monotonic() + self.timeout

        with self._client() as client:
            try:
                resp = client.post(
                    f"/v1/models/{self.model}/predictions",
                    json=body,
                    headers={"Prefer": "wait"},
                )
                resp.raise_for_status()
                prediction = resp.json()

                while prediction.get("status") not in TERMINAL_STATUSES:
                    if time.monotonic() > deadline:
                        raise ProviderError(f"생성 대기 시간 초과 (job={correlation_id})")
                    poll_url = (prediction.get("urls") or {}).get("get")
                    if not poll_url:
                        break
                    time.sleep(self.poll_interval)
                    resp = client.get(poll_url)
                    resp.raise_for_status()
                    prediction = resp.json()
            except httpx.HTTPError as e:
                raise ProviderError(f"프로바이더 호출 실패: {e}") from e

        status = prediction.get("status")
        logger.debug(f"Prediction {prediction.get('id')} for job {correlation_id}: {status}")
        if status in ("failed", "canceled"):
            raise ProviderError(f"생성 실패 ({status}): {prediction.get('error')}")
        return prediction
