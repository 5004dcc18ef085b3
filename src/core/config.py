from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # 앱 설정
    APP_NAME: str = "cartoonify"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # 서버 설정
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    PUBLIC_BASE_URL: str = "http://localhost:8000"

    # DB 설정
    DATABASE_URL: str = "sqlite:///./cartoonify.db"

    # 업로드 원본 저장 경로
    STORAGE_DIR: str = "./storage"
    UPLOAD_TOKEN_MINUTES: int = 10
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024
    RESULT_DOWNLOAD_TIMEOUT_SECONDS: float = 60.0

    # JWT 설정 (외부 인증 서비스가 발급한 토큰 검증용)
    JWT_SECRET_KEY: str = "dev-secret-key-change-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_MINUTES: int = 30

    # 이미지 생성 프로바이더
    PROVIDER_API_TOKEN: str = ""
    PROVIDER_BASE_URL: str = "https://api.replicate.com"
    PROVIDER_MODEL: str = "black-forest-labs/flux-kontext-pro"
    PROVIDER_TIMEOUT_SECONDS: float = 120.0
    PROVIDER_POLL_INTERVAL_SECONDS: float = 1.0

    # 작업 상태 정책
    PROCESSING_STALE_MINUTES: int = 15

    # 크레딧
    DEFAULT_FREE_CREDITS: int = 3
    CREDITS_PER_PACK: int = 10

    # 결제 웹훅
    WEBHOOK_SECRET: str = ""
    WEBHOOK_TOLERANCE_SECONDS: int = 300

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
