"""
캐싱 시스템 모듈

데이터 접근 계층의 조회 결과를 Redis에 캐시하는 캐시 어사이드 헬퍼를 제공합니다.

주요 컴포넌트:
    RedisCache: Redis 기반 캐시 어사이드 구현체
        - 배포 환경 접두사 기반 키 네임스페이스
        - TTL 기반 자동 만료
        - JSON 직렬화/역직렬화
        - 히트 / 미스 / 백엔드 이용 불가 구분

    CacheConfig: 캐시 설정 모델

사용 예시:
    ```python
    from diary_api.cache import RedisCache, CacheConfig

    cache = RedisCache(CacheConfig(redis_url="redis://localhost:6379/0"))
    await cache.connect()

    rows = await cache.get_or_set("diaries__all", fetch_rows, ttl=60)
    ```
"""

from .redis_cache import CacheConfig, CacheLookup, CacheStatus, RedisCache

__all__ = ["CacheConfig", "CacheLookup", "CacheStatus", "RedisCache"]
