"""
HTTP 요청 로깅 미들웨어

모든 HTTP 요청에 고유 ID를 부여하고 메서드, 경로, 상태 코드, 처리 시간을
구조화된 형태로 로깅합니다.

로깅 구조:
    - request_id: 요청 고유 식별자 (응답 헤더 X-Request-ID로도 반환)
    - method / path: HTTP 메서드와 경로
    - status_code: 응답 상태 코드
    - duration_ms: 요청 처리 시간

사용 예시:
    ```python
    app.middleware("http")(LoggingMiddleware(slow_request_ms=500))
    ```
"""

import time
import uuid
from typing import Awaitable, Callable

import structlog
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger(__name__)


class LoggingMiddleware:
    """
    요청/응답 추적 및 처리 시간 로깅 미들웨어

    처리 중 예외가 발생하면 스택 트레이스와 함께 로깅한 뒤 재발생시킵니다.
    """

    def __init__(self, slow_request_ms: float = 1000):
        """
        Args:
            slow_request_ms: 이 시간(밀리초)을 넘는 요청은 경고로 로깅
        """
        self.slow_request_ms = slow_request_ms

    async def __call__(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        start_time = time.time()
        request_id = str(uuid.uuid4())

        log_context = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
        }
        logger.info("HTTP 요청 수신", **log_context)

        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception("요청 처리 중 미처리 예외 발생", **log_context, error=str(e))
            raise

        duration_ms = (time.time() - start_time) * 1000
        response.headers["X-Request-ID"] = request_id

        log_level = "error" if response.status_code >= 500 else "info"
        getattr(logger, log_level)(
            "HTTP 요청 완료",
            **log_context,
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )

        if duration_ms > self.slow_request_ms:
            logger.warning(
                "느린 요청 감지",
                **log_context,
                duration_ms=round(duration_ms, 2),
                threshold_ms=self.slow_request_ms,
            )

        return response
