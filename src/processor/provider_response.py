"""
이미지 생성 프로바이더 응답 정규화.

프로바이더는 결과를 세 가지 모양 중 하나로 돌려준다.
  - "https://.../out.png"
  - ["https://.../out.png", ...]
  - {"output": <위 두 가지 중 하나>, ...}
어느 경우든 결과 URL 하나로 정규화하고, 아니면 InvalidProviderResponse.
"""

from typing import Any

from core.exceptions import InvalidProviderResponse


def _from_scalar_or_list(value: Any) -> str | None:
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, list) and value and isinstance(value[0], str):
        return value[0].strip() or None
    return None


def normalize_output(result: Any) -> str:
    url = _from_scalar_or_list(result)
    if url is None and isinstance(result, dict):
        url = _from_scalar_or_list(result.get("output"))
    if url is None:
        raise InvalidProviderResponse(
            f"결과 URL을 찾을 수 없는 응답 형식: {type(result).__name__}"
        )
    return url
