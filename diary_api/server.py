"""
다이어리 CRUD HTTP 서버

이 모듈은 diaries 테이블에 대한 CRUD API를 제공하는 FastAPI 서버를 구현합니다.
각 요청은 풀에서 커넥션 하나를 획득하여 데이터 접근 계층을 호출하고,
응답 후 커넥션을 풀에 반환합니다.

API 엔드포인트:
    - GET /diaries: 전체 목록 (page 쿼리 파라미터가 있으면 페이지 조회, q로 제목 검색)
    - GET /diaries/{id}: 단건 조회
    - POST /diaries: 생성
    - PUT /diaries/{id}: 수정
    - DELETE /diaries/{id}: 삭제
    - GET /health: 헬스 체크 ("OK")

에러 응답:
    - 없는 다이어리: 404 {"message": "Diary not found"}
    - 필수 필드 누락: 400 {"message": "Title and content are required"}
    - 데이터 접근/예상치 못한 오류: 500 {"error": <메시지>}
    - 없는 경로: 404 "Sorry, that route does not exist."

아키텍처:
    - 풀 매니저, 캐시, 테이블 모델은 app.state에 보관되는 명시적 리소스
    - 수명주기(lifespan)에서 풀을 열고 캐시를 연결하며, 종료 시 모두 정리
    - 캐시 연결 실패 시 캐시 없이 동작
"""

from contextlib import asynccontextmanager
from typing import Annotated, Any, Optional

import aiomysql
import structlog
from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from diary_api.cache import CacheConfig, RedisCache
from diary_api.config.settings import AppConfig
from diary_api.core.pool import MySQLPoolManager
from diary_api.exceptions import DiaryAPIError, ErrorHandler, ResourceNotFoundError
from diary_api.middleware import LoggingMiddleware
from diary_api.models.diary import DiaryCreated, DiaryIn, DiaryModel

logger = structlog.get_logger(__name__)

NOT_FOUND_ROUTE_MESSAGE = "Sorry, that route does not exist."


def _diary_not_found(diary_id: int) -> ResourceNotFoundError:
    return ResourceNotFoundError(
        "Diary not found", resource_type="diary", resource_id=str(diary_id)
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI 애플리케이션 수명주기 관리

    시작 시 작업:
        - MySQL 연결 풀 생성 (실패하면 서버 시작 중단)
        - Redis 캐시 연결 (실패하면 캐시 없이 계속)

    종료 시 작업:
        - 캐시 연결 해제
        - 연결 풀 종료
    """
    config: AppConfig = app.state.config
    pool_manager: MySQLPoolManager = app.state.pool_manager
    cache: Optional[RedisCache] = app.state.cache

    logger.info("다이어리 API 서버 시작", env=config.env, port=config.port)

    await pool_manager.initialize()

    if cache is not None and not cache.connected:
        try:
            await cache.connect()
        except Exception as e:
            logger.warning("캐시 연결 실패, 캐시 없이 동작", error=str(e))
            app.state.diaries.bind_cache(None)

    yield

    if cache is not None:
        await cache.disconnect()
    await pool_manager.close()
    logger.info("다이어리 API 서버 종료")


# === 의존성 ===


async def get_connection(request: Request):
    """요청 하나 동안 사용할 풀 커넥션 (응답 후 반환)"""
    async with request.app.state.pool_manager.acquire() as conn:
        yield conn


def get_diaries(request: Request) -> DiaryModel:
    return request.app.state.diaries


Connection = Annotated[aiomysql.Connection, Depends(get_connection)]
Diaries = Annotated[DiaryModel, Depends(get_diaries)]


# === 예외 처리기 ===


async def handle_api_error(request: Request, exc: DiaryAPIError) -> JSONResponse:
    status_code = ErrorHandler.status_code_for(exc)
    if status_code >= 500:
        logger.error(
            "요청 처리 실패",
            path=request.url.path,
            **ErrorHandler.create_error_context(exc),
        )
    return JSONResponse(status_code=status_code, content=ErrorHandler.handle_error(exc))


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "예상치 못한 오류",
        path=request.url.path,
        exc_info=exc,
        **ErrorHandler.create_error_context(exc),
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorHandler.handle_error(exc),
    )


async def handle_http_exception(
    request: Request, exc: StarletteHTTPException
) -> Any:
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        return PlainTextResponse(NOT_FOUND_ROUTE_MESSAGE, status_code=exc.status_code)
    return PlainTextResponse(str(exc.detail), status_code=exc.status_code)


# === 엔드포인트 ===


async def list_diaries(
    conn: Connection,
    diaries: Diaries,
    request: Request,
    page: Annotated[Optional[int], Query(ge=1)] = None,
    page_size: Annotated[int, Query(alias="pageSize", ge=1)] = 25,
    q: Optional[str] = None,
):
    """
    다이어리 목록 조회

    page가 없으면 전체 목록(없으면 빈 리스트)을, 있으면 페이지 결과를
    반환합니다. 페이지 결과는 캐시 TTL 동안 쓰기 작업을 반영하지 않을 수 있습니다.
    """
    if page is None:
        return await diaries.all(conn) or []

    return await diaries.find_page_from_cache(
        conn,
        filter={"title": q},
        like_fields=["title"],
        page=page,
        page_size=page_size,
        ttl=request.app.state.config.redis.expire_ttl,
    )


async def get_diary(diary_id: int, conn: Connection, diaries: Diaries):
    diary = await diaries.find_one(conn, {"id": diary_id})
    if not diary:
        raise _diary_not_found(diary_id)
    return diary


async def create_diary(conn: Connection, diaries: Diaries, body: Optional[DiaryIn] = None):
    if body is None or not body.is_complete():
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"message": "Title and content are required"},
        )

    diary_id = await diaries.insert(conn, {"title": body.title, "content": body.content})
    logger.info("다이어리 생성", diary_id=diary_id)

    created = DiaryCreated(id=diary_id, title=body.title, content=body.content)
    return JSONResponse(status_code=status.HTTP_201_CREATED, content=created.model_dump())


async def update_diary(diary_id: int, body: DiaryIn, conn: Connection, diaries: Diaries):
    data = body.model_dump(exclude_none=True)
    if not data:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"message": "Title or content is required"},
        )

    updated = await diaries.update_by_filter(conn, {"id": diary_id}, data)
    if not updated:
        raise _diary_not_found(diary_id)

    logger.info("다이어리 수정", diary_id=diary_id)
    return {"message": "Diary updated successfully"}


async def delete_diary(diary_id: int, conn: Connection, diaries: Diaries):
    deleted = await diaries.delete_by_filter(conn, {"id": diary_id})
    if not deleted:
        raise _diary_not_found(diary_id)

    logger.info("다이어리 삭제", diary_id=diary_id)
    return {"message": "Diary deleted successfully"}


async def health() -> PlainTextResponse:
    return PlainTextResponse("OK")


def create_app(
    config: Optional[AppConfig] = None,
    pool_manager: Optional[MySQLPoolManager] = None,
    cache: Optional[RedisCache] = None,
) -> FastAPI:
    """
    FastAPI 애플리케이션 생성

    Args:
        config: 서비스 설정 (None이면 환경 변수에서 로드)
        pool_manager: 주입할 풀 매니저 (None이면 설정으로 생성)
        cache: 주입할 캐시 (None이고 캐시가 활성화되어 있으면 설정으로 생성)

    Returns:
        FastAPI: 라우트, 예외 처리기, 미들웨어가 등록된 애플리케이션
    """
    config = config or AppConfig.from_env()

    if pool_manager is None:
        pool_manager = MySQLPoolManager(config.database)
    if cache is None and config.redis.enabled:
        cache = RedisCache(
            CacheConfig(
                redis_url=config.redis.url,
                default_ttl=config.redis.expire_ttl,
                max_ttl=config.redis.max_ttl,
                key_prefix=config.env,
            )
        )

    app = FastAPI(
        title=config.title,
        description="MySQL 다이어리 CRUD API (Redis 캐시 어사이드)",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.pool_manager = pool_manager
    app.state.cache = cache
    app.state.diaries = DiaryModel(cache=cache)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    if config.logging.log_requests:
        app.middleware("http")(LoggingMiddleware())

    app.add_exception_handler(DiaryAPIError, handle_api_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.add_api_route("/diaries", list_diaries, methods=["GET"])
    app.add_api_route("/diaries/{diary_id}", get_diary, methods=["GET"])
    app.add_api_route("/diaries", create_diary, methods=["POST"])
    app.add_api_route("/diaries/{diary_id}", update_diary, methods=["PUT"])
    app.add_api_route("/diaries/{diary_id}", delete_diary, methods=["DELETE"])
    app.add_api_route("/health", health, methods=["GET"], response_class=PlainTextResponse)

    return app
