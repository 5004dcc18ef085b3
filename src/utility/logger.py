import sys

from loguru import logger


def setup_logger(level: str = "DEBUG", serialize: bool = False):
    """Loguru 기본 설정. 앱 시작 시 한 번 호출.

    요청 중 로그에는 미들웨어가 넣은 request_id가 붙고, 그 밖에서는 "-".
    serialize=True면 JSON 한 줄로 출력한다 (로그 수집기용).
    """
    logger.remove()
    logger.configure(extra={"request_id": "-"})
    logger.add(
        sys.stderr,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<magenta>{extra[request_id]}</magenta> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
            "<level>{message}</level>"
        ),
        level=level,
        serialize=serialize,
    )
    return logger
