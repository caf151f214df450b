"""
Redis 기반 캐시 어사이드(cache-aside) 시스템

이 모듈은 Redis를 백엔드로 사용하는 캐시 헬퍼를 구현합니다.
임의의 조회 함수를 키 하나로 감싸 get/set/expire 의미론을 제공하며,
데이터 접근 계층의 캐시 조회 변형들이 이 헬퍼를 통해 동작합니다.

주요 기능:
    - 비동기 Redis 클라이언트 사용 (redis.asyncio)
    - 배포 환경 접두사 기반 키 네임스페이스
    - TTL(Time-To-Live) 기반 자동 만료
    - JSON 직렬화/역직렬화
    - 조회 결과 구분: 히트 / 미스 / 백엔드 이용 불가

오류 처리:
    - 모든 캐시 기본 연산(get/set/delete/expire)은 백엔드 오류를 로깅하고
      falsy 값을 반환합니다. 캐시 오류는 이 모듈 밖으로 전파되지 않습니다.
    - 조회 함수(fetch)가 발생시킨 예외는 캐시 오류가 아니므로 그대로 전파됩니다.

알려진 한계:
    - 쓰기 작업은 관련 캐시 키를 무효화하지 않습니다 (TTL 동안 오래된 값 가능)
    - 동일 키에 대한 동시 첫 호출은 fetch를 중복 실행할 수 있습니다

의존성:
    - redis: Redis 비동기 클라이언트
    - pydantic: 설정 검증
    - structlog: 구조화된 로깅
"""

import json
import hashlib
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Awaitable, Callable, Optional
import redis.asyncio as redis
from pydantic import BaseModel
import structlog

from diary_api.exceptions import CacheError

# 모듈별 구조화된 로거
logger = structlog.get_logger(__name__)

# 캐시 키 구성 요소 구분자
KEY_DELIMITER = "__"


class CacheConfig(BaseModel):
    """
    Redis 캐시 설정 모델

    Attributes:
        redis_url (str): Redis 서버 연결 URL
            형식: "redis://[:password@]host:port/db"
        default_ttl (int): 기본 캐시 만료 시간 (초 단위)
        max_ttl (int): 최대 캐시 만료 시간 (초 단위)
        key_prefix (str): 캐시 키 접두사 (배포 환경 이름)
            같은 Redis를 공유하는 환경 간 키 충돌 방지
    """

    redis_url: str = "redis://localhost:6379/0"
    default_ttl: int = 60
    max_ttl: int = 3600
    key_prefix: str = "development"


class CacheStatus(Enum):
    """캐시 조회 결과 상태"""

    HIT = "hit"
    MISS = "miss"
    UNAVAILABLE = "unavailable"  # 백엔드 연결 없음 또는 명령 실패


@dataclass(frozen=True)
class CacheLookup:
    """
    캐시 조회 결과

    키가 없는 경우(MISS)와 백엔드 오류(UNAVAILABLE)를 구분합니다.
    value는 HIT일 때만 의미가 있습니다.
    """

    status: CacheStatus
    value: Any = None

    @property
    def hit(self) -> bool:
        return self.status is CacheStatus.HIT


def _json_default(value: Any) -> Any:
    """json.dumps가 직접 처리하지 못하는 DB 값 변환"""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8", errors="replace")
    return str(value)


def serialize(value: Any) -> str:
    """캐시 저장용 JSON 직렬화 (한글 유지)"""
    return json.dumps(value, ensure_ascii=False, default=_json_default)


def to_cached_form(value: Any) -> Any:
    """
    캐시 히트 시 돌려받을 형태로 값 변환

    datetime, Decimal 등 DB 값은 저장 시 문자열이 되므로, 미스 경로에서도
    같은 직렬화를 거쳐 히트와 값이 같은 결과를 반환합니다.
    """
    if isinstance(value, str):
        return value
    return json.loads(serialize(value))


class RedisCache:
    """
    Redis 기반 캐시 어사이드 헬퍼

    키 구조:
        {key_prefix}:{key}
        예: "production:mysql__diaries__{"id":1}__*"

    사용 예시:
        ```python
        cache = RedisCache(CacheConfig(redis_url="redis://localhost:6379/0"))
        await cache.connect()

        diary = await cache.get_or_set(
            RedisCache.make_key("mysql", "diaries", {"id": 1}),
            lambda: model.find_one(conn, {"id": 1}),
            ttl=60,
        )
        ```

    Attributes:
        config (CacheConfig): 캐시 설정
        _client (redis.Redis): Redis 비동기 클라이언트
        _connected (bool): 연결 상태
    """

    def __init__(self, config: CacheConfig, client: Optional[redis.Redis] = None):
        """
        Redis 캐시 인스턴스 초기화

        실제 연결은 connect()에서 수행됩니다. 테스트나 외부에서 생성한
        클라이언트를 주입하려면 client를 넘깁니다.
        """
        self.config = config
        self._client: Optional[redis.Redis] = client
        self._connected = client is not None

    @property
    def connected(self) -> bool:
        return self._connected and self._client is not None

    async def connect(self) -> None:
        """
        Redis 서버에 비동기 연결

        ping으로 연결을 확인합니다. 실패하면 예외를 재발생시켜
        호출자가 캐시 없이 동작할지 결정하도록 합니다.

        Raises:
            redis.ConnectionError: Redis 서버 연결 실패
            redis.TimeoutError: 연결 시간 초과
        """
        try:
            self._client = redis.from_url(
                self.config.redis_url,
                decode_responses=True,  # 바이트를 문자열로 자동 변환
            )
            await self._client.ping()

            self._connected = True
            logger.info("Redis 캐시 연결 성공", key_prefix=self.config.key_prefix)

        except Exception as e:
            logger.error("Redis 캐시 연결 실패", error=str(e))
            self._connected = False
            raise

    async def disconnect(self) -> None:
        """Redis 연결 해제. 이미 해제된 상태에서도 안전하게 호출 가능"""
        if self._client:
            await self._client.aclose()
            self._client = None
            self._connected = False
            logger.info("Redis 캐시 연결 해제")

    def _generate_key(self, key: str) -> str:
        """
        Redis 저장용 최종 캐시 키 생성

        배포 환경 접두사를 붙이고, 키가 200자를 넘으면 SHA256 해시로 대체합니다.
        """
        if len(key) > 200:
            key = hashlib.sha256(key.encode()).hexdigest()
        return f"{self.config.key_prefix}:{key}"

    @staticmethod
    def make_key(*parts: Any) -> str:
        """
        쿼리 파라미터로부터 결정적인 캐시 키 생성

        매핑과 시퀀스는 키를 정렬하여 JSON으로 직렬화하므로, 삽입 순서만 다른
        논리적으로 동일한 쿼리는 같은 키를 갖습니다. None은 빈 문자열이 됩니다.

        Example:
            >>> RedisCache.make_key("mysql", "diaries", {"b": 2, "a": 1}, "*")
            'mysql__diaries__{"a":1,"b":2}__*'
        """
        tokens = []
        for part in parts:
            if part is None:
                tokens.append("")
            elif isinstance(part, str):
                tokens.append(part)
            elif isinstance(part, (dict, list, tuple)):
                tokens.append(
                    json.dumps(
                        part,
                        sort_keys=True,
                        ensure_ascii=False,
                        separators=(",", ":"),
                        default=_json_default,
                    )
                )
            else:
                tokens.append(str(part))
        return KEY_DELIMITER.join(tokens)

    def _resolve_ttl(self, ttl: Optional[int]) -> int:
        if ttl is None:
            return self.config.default_ttl
        return min(ttl, self.config.max_ttl)

    async def lookup(self, key: str) -> CacheLookup:
        """
        캐시 조회 (상태 구분)

        Returns:
            CacheLookup:
                HIT: 값이 존재함 (JSON 역직렬화된 값, 실패 시 원본 문자열)
                MISS: 키 없음
                UNAVAILABLE: 연결 없음 또는 Redis 명령 실패
        """
        try:
            if not self.connected:
                raise CacheError("Redis client is not connected", key=key)

            value = await self._client.get(self._generate_key(key))

        except Exception as e:
            logger.warning("캐시 조회 실패", key=key, error=str(e))
            return CacheLookup(CacheStatus.UNAVAILABLE)

        if value is None:
            return CacheLookup(CacheStatus.MISS)

        try:
            return CacheLookup(CacheStatus.HIT, json.loads(value))
        except json.JSONDecodeError:
            # JSON이 아닌 문자열은 그대로 반환
            return CacheLookup(CacheStatus.HIT, value)

    async def get(self, key: str, default: Any = None) -> Any:
        """
        캐시에서 값 조회

        키가 없거나 백엔드 오류가 발생하면 default를 반환합니다.
        두 경우를 구분해야 한다면 lookup()을 사용합니다.
        """
        result = await self.lookup(key)
        return result.value if result.hit else default

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """
        캐시에 값 저장

        Args:
            key: 캐시 키 (접두사 제외)
            value: 저장할 값. 문자열이 아니면 JSON으로 직렬화
            ttl: 만료 시간 (초). None이면 기본 TTL, max_ttl로 상한 적용,
                0 이하이면 만료 없이 저장

        Returns:
            bool: 저장 성공 여부 (연결 없음/직렬화 실패/명령 실패 시 False)
        """
        if not self.connected:
            return False

        try:
            cache_key = self._generate_key(key)
            payload = value if isinstance(value, str) else serialize(value)
            ttl = self._resolve_ttl(ttl)

            if ttl > 0:
                await self._client.set(cache_key, payload, ex=ttl)
            else:
                await self._client.set(cache_key, payload)

            logger.debug("캐시 저장 성공", key=key, ttl=ttl)
            return True

        except Exception as e:
            logger.warning("캐시 저장 실패", key=key, error=str(e))
            return False

    async def delete(self, key: str) -> bool:
        """
        캐시에서 특정 키 삭제

        Returns:
            bool: 키가 존재했고 삭제되었으면 True, 그 외(키 없음 포함) False
        """
        if not self.connected:
            return False

        try:
            result = await self._client.delete(self._generate_key(key))
            return result > 0
        except Exception as e:
            logger.warning("캐시 삭제 실패", key=key, error=str(e))
            return False

    async def expire(self, key: str, ttl: Optional[int] = None) -> bool:
        """
        키의 만료 시간 재설정

        Returns:
            bool: 키가 존재하여 만료 시간이 설정되었으면 True
        """
        if not self.connected:
            return False

        try:
            return bool(
                await self._client.expire(self._generate_key(key), self._resolve_ttl(ttl))
            )
        except Exception as e:
            logger.warning("캐시 만료 설정 실패", key=key, error=str(e))
            return False

    async def get_or_set(
        self,
        key: str,
        fetch: Callable[[], Awaitable[Any]],
        ttl: Optional[int] = None,
    ) -> Any:
        """
        캐시에서 값을 가져오거나, 없으면 fetch를 실행하여 저장

        동작:
            - HIT: 역직렬화된 캐시 값 반환 (fetch 호출 안 함)
            - MISS: fetch 실행, 결과가 truthy면 TTL과 함께 저장 후 반환.
              저장이 실패해도 새 결과를 반환
            - UNAVAILABLE: fetch 실행 후 저장 없이 반환

            fetch 결과는 항상 to_cached_form()을 거쳐 반환되므로 히트와 미스의
            반환 값 타입이 같습니다.

        Args:
            key: 캐시 키 (접두사 제외)
            fetch: 인자 없는 비동기 조회 함수
            ttl: 만료 시간 (초)

        Raises:
            fetch가 발생시킨 예외 (예: ExecutionError)
        """
        cached = await self.lookup(key)
        if cached.hit:
            logger.debug("캐시 히트", key=key)
            return cached.value

        result = to_cached_form(await fetch())

        if cached.status is CacheStatus.MISS and result:
            await self.set(key, result, ttl)
        elif cached.status is CacheStatus.UNAVAILABLE:
            logger.debug("캐시 백엔드 이용 불가, 원본 결과 반환", key=key)

        return result
