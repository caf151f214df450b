"""
동적 SQL 빌더

필터 매핑, 정렬 명세, 페이징 정보를 파라미터화된 MySQL 구문과
위치 기반 바인딩 값 목록으로 변환합니다. 이 모듈의 함수들은 I/O를 수행하지
않으므로 데이터베이스 없이 독립적으로 테스트할 수 있습니다.

구성 요소:
    - Condition: 컬럼, 연산자(EQ/LIKE), 값으로 구성된 단일 조건
    - SortKey: 컬럼과 방향(ASC/DESC)으로 구성된 단일 정렬 키
    - build_*: SELECT/COUNT/INSERT/UPDATE/DELETE/UPSERT 구문 생성기

보안 불변식:
    - 모든 식별자는 백틱으로 감싸고 내부 백틱은 두 번 반복하여 이스케이프
    - 모든 값은 드라이버 플레이스홀더(%s)로 바인딩되며 SQL 텍스트에 삽입되지 않음
    - 예외: 호출자가 신뢰하는 원시 술어 문자열과 원시 정렬 문자열은 그대로 사용
"""

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional, Union

from diary_api.exceptions import ValidationError

# aiomysql(pymysql) 위치 파라미터 플레이스홀더
PLACEHOLDER = "%s"

type Filter = Mapping[str, Any]
type SortSpec = Union[str, Mapping[str, Any], None]
type Statement = tuple[str, list[Any]]
type Predicate = Union[Mapping[str, Any], str, None]


class Operator(Enum):
    """조건 연산자"""

    EQ = "="
    LIKE = "LIKE"


class Direction(Enum):
    """정렬 방향"""

    ASC = "ASC"
    DESC = "DESC"

    @classmethod
    def parse(cls, value: Any) -> "Direction":
        """-1 또는 "DESC"(대소문자 무시)는 내림차순, 그 외는 모두 오름차순"""
        if value == -1 or str(value).upper() == "DESC":
            return cls.DESC
        return cls.ASC


@dataclass(frozen=True)
class Condition:
    """
    WHERE 절의 단일 조건

    Attributes:
        column: 컬럼 이름 (컴파일 시 이스케이프됨)
        operator: EQ 또는 LIKE
        value: 바인딩할 값. LIKE는 부분 문자열 매칭을 위해 %value%로 감쌈
    """

    column: str
    operator: Operator
    value: Any

    def compile(self) -> tuple[str, Any]:
        if self.operator is Operator.LIKE:
            return f"{escape_identifier(self.column)} LIKE {PLACEHOLDER}", f"%{self.value}%"
        return f"{escape_identifier(self.column)} = {PLACEHOLDER}", self.value


@dataclass(frozen=True)
class SortKey:
    """ORDER BY 절의 단일 정렬 키"""

    column: str
    direction: Direction = Direction.ASC

    def compile(self) -> str:
        return f"{escape_identifier(self.column)} {self.direction.value}"


def escape_identifier(name: str) -> str:
    """
    식별자(테이블/컬럼 이름) 이스케이프

    백틱으로 감싸고 내부의 백틱은 두 번 반복합니다.

    Example:
        >>> escape_identifier("na`me")
        '`na``me`'
    """
    return f"`{str(name).replace('`', '``')}`"


def ensure_flat_mapping(value: Any, field: str, allow_empty: bool = True) -> Filter:
    """
    인자가 평탄한 키-값 매핑인지 검증

    Args:
        value: 검증할 값
        field: 에러 메시지에 사용할 인자 이름 ("filter", "data")
        allow_empty: 빈 매핑 허용 여부

    Raises:
        ValidationError: 매핑이 아니거나, 중첩 값이 있거나, 비어 있는 경우
    """
    if not isinstance(value, Mapping):
        raise ValidationError(
            f"{field.capitalize()} must be a mapping", field=field, value=value
        )
    if not allow_empty and len(value) == 0:
        raise ValidationError(
            f"{field.capitalize()} cannot be empty", field=field
        )
    for key, item in value.items():
        if isinstance(item, (Mapping, list, tuple, set)):
            raise ValidationError(
                f"{field.capitalize()} must be a flat key-value mapping",
                field=f"{field}.{key}",
                value=item,
            )
    return value


def conditions_from_filter(
    filter: Filter, like_fields: Iterable[str] = ()
) -> list[Condition]:
    """
    필터 매핑을 순서가 보장된 조건 목록으로 변환

    매핑의 삽입 순서가 절 순서와 바인딩 순서를 결정합니다.
    None 값은 "제약 없음"으로 간주하여 제외합니다 (IS NULL이 아님).
    """
    ensure_flat_mapping(filter, "filter")
    like = set(like_fields or ())
    return [
        Condition(
            column=key,
            operator=Operator.LIKE if key in like else Operator.EQ,
            value=value,
        )
        for key, value in filter.items()
        if value is not None
    ]


def compile_conditions(conditions: Iterable[Condition]) -> Statement:
    """조건 목록을 (WHERE 절, 바인딩 값) 으로 컴파일. 조건이 없으면 빈 절"""
    clauses = []
    values = []
    for condition in conditions:
        clause, value = condition.compile()
        clauses.append(clause)
        values.append(value)

    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    return where, values


def build_where_clause(
    filter: Optional[Filter], like_fields: Iterable[str] = ()
) -> Statement:
    """
    WHERE 절 생성 (LIKE 검색 지원)

    Args:
        filter: 컬럼 -> 값 매핑. 비어 있거나 None이면 WHERE 절 없음
        like_fields: %value% 부분 매칭을 사용할 컬럼 이름들

    Returns:
        (WHERE 절 텍스트, 위치 기반 바인딩 값 목록)

    Example:
        >>> build_where_clause({"title": "day", "id": None, "mood": 3}, ["title"])
        ('WHERE `title` LIKE %s AND `mood` = %s', ['%day%', 3])
    """
    if not filter:
        ensure_flat_mapping(filter if filter is not None else {}, "filter")
        return "", []
    return compile_conditions(conditions_from_filter(filter, like_fields))


def sort_keys_from_spec(order_by: Mapping[str, Any]) -> list[SortKey]:
    """정렬 매핑을 삽입 순서대로 SortKey 목록으로 변환"""
    return [
        SortKey(column=column, direction=Direction.parse(direction))
        for column, direction in order_by.items()
    ]


def build_order_by_clause(order_by: SortSpec, default_field: str) -> str:
    """
    ORDER BY 절 생성

    - 비어 있지 않은 문자열: 호출자가 신뢰하는 원시 정렬 절로 그대로 사용
    - 비어 있지 않은 매핑: 컬럼별 방향으로 컴파일
    - 그 외: 기본 정렬 필드 내림차순
    """
    if isinstance(order_by, str) and order_by.strip():
        return f"ORDER BY {order_by}"
    if isinstance(order_by, Mapping) and len(order_by) > 0:
        sort_fields = [key.compile() for key in sort_keys_from_spec(order_by)]
        return f"ORDER BY {', '.join(sort_fields)}"
    if not default_field:
        return ""
    return f"ORDER BY {escape_identifier(default_field)} DESC"


def build_filter_predicate(filter: Predicate) -> Statement:
    """
    UPDATE/DELETE용 술어 생성

    구조화된 매핑(AND 결합 동등 조건) 또는 호출자가 신뢰하는 원시 술어
    문자열을 받습니다. 원시 문자열은 추가로 이스케이프하지 않습니다.

    Raises:
        ValidationError: 사용 가능한 필터 조건이 없는 경우
            (None, 빈 문자열, 모든 값이 None인 매핑 포함)
    """
    if isinstance(filter, str):
        predicate = filter.strip()
        if predicate[:6].upper() == "WHERE ":
            predicate = predicate[6:].strip()
        if predicate:
            return f"WHERE {predicate}", []
    elif isinstance(filter, Mapping):
        where, values = compile_conditions(conditions_from_filter(filter))
        if where:
            return where, values

    raise ValidationError(
        "A valid filter condition must be provided", field="filter", value=filter
    )


def build_select(
    table: str,
    select: str = "*",
    where: str = "",
    order_by: str = "",
    limit: Optional[int] = None,
    with_offset: bool = False,
) -> str:
    """
    SELECT 구문 조립

    limit이 주어지면 LIMIT 리터럴을 붙이고, with_offset이면
    LIMIT/OFFSET을 모두 플레이스홀더로 남깁니다 (페이지 조회용).
    """
    parts = [f"SELECT {select} FROM {escape_identifier(table)}"]
    if where:
        parts.append(where)
    if order_by:
        parts.append(order_by)
    if with_offset:
        parts.append(f"LIMIT {PLACEHOLDER} OFFSET {PLACEHOLDER}")
    elif limit is not None:
        parts.append(f"LIMIT {int(limit)}")
    return " ".join(parts)


def build_count(table: str, where: str = "", column: Optional[str] = None) -> str:
    """COUNT 구문 조립. 결과 컬럼 별칭은 CNT"""
    target = escape_identifier(column) if column else "*"
    sql = f"SELECT COUNT({target}) AS CNT FROM {escape_identifier(table)}"
    return f"{sql} {where}" if where else sql


def build_insert(table: str, data: Filter) -> Statement:
    """
    INSERT 구문 생성

    Raises:
        ValidationError: data가 매핑이 아니거나 비어 있는 경우
    """
    ensure_flat_mapping(data, "data", allow_empty=False)

    columns = [escape_identifier(column) for column in data.keys()]
    placeholders = [PLACEHOLDER] * len(columns)
    sql = (
        f"INSERT INTO {escape_identifier(table)} "
        f"({', '.join(columns)}) VALUES ({', '.join(placeholders)})"
    )
    return sql, list(data.values())


def build_update(table: str, filter: Predicate, data: Filter) -> Statement:
    """
    UPDATE 구문 생성

    바인딩 순서: SET 값들 다음에 WHERE 값들.
    """
    ensure_flat_mapping(data, "data", allow_empty=False)

    set_clause = ", ".join(
        f"{escape_identifier(column)} = {PLACEHOLDER}" for column in data.keys()
    )
    values = list(data.values())

    where, where_values = build_filter_predicate(filter)
    values.extend(where_values)

    return f"UPDATE {escape_identifier(table)} SET {set_clause} {where}", values


def build_delete(table: str, filter: Predicate) -> Statement:
    """DELETE 구문 생성. 필터 계약은 build_update와 동일"""
    where, values = build_filter_predicate(filter)
    return f"DELETE FROM {escape_identifier(table)} {where}", values


def build_upsert(table: str, filter: Filter, data: Filter) -> Statement:
    """
    INSERT ... ON DUPLICATE KEY UPDATE 구문 생성

    삽입 값과 갱신 할당 모두 data의 값을 사용합니다. filter는 비어 있지 않은
    매핑이어야 하지만 SQL에는 포함되지 않습니다. 중복 판정은 테이블의
    유니크/기본 키 제약에 의존하므로, filter가 그런 키를 가리키는지는
    호출자가 보장해야 합니다.
    """
    ensure_flat_mapping(filter, "filter", allow_empty=False)
    ensure_flat_mapping(data, "data", allow_empty=False)

    columns = [escape_identifier(column) for column in data.keys()]
    update_set = ", ".join(f"{column} = VALUES({column})" for column in columns)
    sql = (
        f"INSERT INTO {escape_identifier(table)} ({', '.join(columns)}) "
        f"VALUES ({', '.join([PLACEHOLDER] * len(columns))}) "
        f"ON DUPLICATE KEY UPDATE {update_set}"
    )
    return sql, list(data.values())
