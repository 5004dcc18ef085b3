"""앱 전역 커스텀 예외 클래스.

AppException을 상속하면 전역 핸들러(error_handlers.py)가 자동으로
{"error_code": "...", "message": "..."} 형식의 JSON 응답을 생성한다.
"""


class AppException(Exception):
    """앱 전역 베이스 예외.

    서브클래스에서 status_code, error_code, message를 클래스 변수로 정의하면
    전역 핸들러가 해당 값을 읽어 HTTP 응답을 생성한다.
    """

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"
    message: str = "서버 내부 오류가 발생했습니다"

    def __init__(self, message: str | None = None):
        if message:
            self.message = message
        super().__init__(self.message)


# --- 인증 관련 ---


class InvalidToken(AppException):
    status_code = 401
    error_code = "INVALID_TOKEN"
    message = "유효하지 않거나 만료된 토큰입니다"


class Forbidden(AppException):
    status_code = 403
    error_code = "FORBIDDEN"
    message = "접근 권한이 없습니다"


# --- 조회 관련 ---


class JobNotFound(AppException):
    status_code = 404
    error_code = "JOB_NOT_FOUND"
    message = "작업을 찾을 수 없습니다"


class UserNotFound(AppException):
    status_code = 404
    error_code = "USER_NOT_FOUND"
    message = "사용자를 찾을 수 없습니다"


class StorageObjectNotFound(AppException):
    status_code = 404
    error_code = "STORAGE_OBJECT_NOT_FOUND"
    message = "업로드된 파일을 찾을 수 없습니다"


# --- 작업 상태 / 생성 관련 ---


class InvalidJobState(AppException):
    status_code = 409
    error_code = "INVALID_JOB_STATE"
    message = "현재 작업 상태에서는 수행할 수 없는 요청입니다"


class NotConfigured(AppException):
    status_code = 503
    error_code = "NOT_CONFIGURED"
    message = "필수 외부 서비스 설정이 누락되었습니다"


class ProviderError(AppException):
    status_code = 502
    error_code = "PROVIDER_ERROR"
    message = "이미지 생성 서비스 호출에 실패했습니다"


class InvalidProviderResponse(AppException):
    status_code = 502
    error_code = "INVALID_PROVIDER_RESPONSE"
    message = "이미지 생성 결과를 해석할 수 없습니다"


class InvalidUpload(AppException):
    status_code = 400
    error_code = "INVALID_UPLOAD"
    message = "이미지 파일이 아니거나 허용 크기를 초과했습니다"


# --- 크레딧 관련 ---


class InsufficientCredits(AppException):
    status_code = 402
    error_code = "INSUFFICIENT_CREDITS"
    message = "남은 크레딧이 없습니다"


class InvalidAmount(AppException):
    status_code = 400
    error_code = "INVALID_AMOUNT"
    message = "크레딧 수량은 1 이상이어야 합니다"


# --- 결제 웹훅 관련 ---


class WebhookVerificationFailed(AppException):
    status_code = 403
    error_code = "WEBHOOK_VERIFICATION_FAILED"
    message = "웹훅 서명 검증에 실패했습니다"


class InvalidWebhookPayload(AppException):
    status_code = 400
    error_code = "INVALID_WEBHOOK_PAYLOAD"
    message = "웹훅 페이로드를 처리할 수 없습니다"
