"""
사용자 정의 예외 및 에러 처리 모듈

이 모듈은 다이어리 API의 모든 에러와 예외를 정의하고 처리합니다.
데이터 접근 계층, 캐시 계층, HTTP 핸들러가 공통으로 사용하는
에러 분류 체계를 제공합니다.

주요 구성요소:
    - ErrorCode: 에러 코드 열거형
    - DiaryAPIError: 모든 예외의 기본 클래스
    - 구체적인 예외 클래스들: 검증, 실행, 캐시, 리소스 없음
    - ErrorHandler: HTTP 응답 변환을 위한 중앙 집중식 에러 처리기

에러 전파 정책:
    - ValidationError: I/O 이전에 감지, 로깅 후 호출자에게 재발생
    - ExecutionError: 구문/연결/트랜잭션 실패, 로깅 후 재발생 (재시도 없음)
    - CacheError: 캐시 계층 내부에서만 사용, 항상 falsy 결과로 강등
"""

from typing import Any, Dict, Optional
from enum import Enum


class ErrorCode(Enum):
    """
    다이어리 API 에러 코드 열거형

    각 코드는 HTTP 핸들러가 응답 상태 코드를 결정할 때 사용됩니다.
    """

    INTERNAL_ERROR = "internal_error"  # 예상치 못한 내부 에러
    VALIDATION_ERROR = "validation_error"  # 필터/데이터 인자 검증 실패
    EXECUTION_ERROR = "execution_error"  # SQL 실행, 연결, 트랜잭션 실패
    CACHE_ERROR = "cache_error"  # 캐시 백엔드 실패 (외부로 전파되지 않음)
    RESOURCE_NOT_FOUND = "resource_not_found"  # 조회 결과 없음


class DiaryAPIError(Exception):
    """
    모든 다이어리 API 에러의 기본 예외 클래스

    Attributes:
        message (str): 에러 메시지
        code (ErrorCode): 에러 코드
        data (dict): 추가 에러 정보 (선택사항)
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        data: Optional[Dict[str, Any]] = None
    ):
        """
        에러 초기화

        Args:
            message: 사용자에게 표시될 에러 메시지
            code: 에러 코드 (기본값: INTERNAL_ERROR)
            data: 디버깅에 유용한 추가 정보 (선택사항)
        """
        self.message = message
        self.code = code
        self.data = data or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """
        에러를 직렬화 가능한 딕셔너리로 변환

        data 필드는 값이 있을 때만 포함됩니다.
        """
        error_dict = {
            "code": self.code.value,
            "message": self.message
        }
        if self.data:
            error_dict["data"] = self.data
        return error_dict


class ValidationError(DiaryAPIError):
    """
    입력 검증 실패 에러

    필터나 데이터 인자가 평탄한 매핑이 아니거나 비어 있을 때,
    또는 사용 가능한 필터 조건이 제공되지 않았을 때 발생합니다.
    항상 데이터베이스 I/O 이전에 감지됩니다.
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        data: Optional[Dict[str, Any]] = None
    ):
        """
        Args:
            message: 에러 메시지
            field: 검증에 실패한 인자 이름 (예: "filter", "data")
            value: 잘못된 값 (선택사항)
            data: 추가 정보
        """
        if data is None:
            data = {}
        if field:
            data["field"] = field
        if value is not None:
            # 긴 값은 100자로 잘라서 로그에 과도한 데이터 방지
            data["value"] = str(value)[:100]

        super().__init__(
            message=message,
            code=ErrorCode.VALIDATION_ERROR,
            data=data
        )


class ExecutionError(DiaryAPIError):
    """
    데이터베이스 실행 실패 에러

    SQL 구문 실행 실패, 연결 획득 실패, 트랜잭션 제어 실패를 나타냅니다.
    드라이버 예외의 메시지를 보존하며 재시도나 일시적/영구적 분류는 하지 않습니다.
    """

    def __init__(
        self,
        message: str,
        statement: Optional[str] = None,
        operation: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None
    ):
        """
        Args:
            message: 에러 메시지 (보통 드라이버 예외 메시지)
            statement: 실패한 SQL 문 (선택사항)
            operation: 실패한 작업 이름 (예: "insert", "start_transaction")
            data: 추가 정보
        """
        if data is None:
            data = {}
        if statement:
            data["statement"] = " ".join(statement.split())[:500]
        if operation:
            data["operation"] = operation

        super().__init__(
            message=message,
            code=ErrorCode.EXECUTION_ERROR,
            data=data
        )


# 데이터 접근 계층 문서에서 사용하는 이름
DatabaseError = ExecutionError


class CacheError(DiaryAPIError):
    """
    캐시 백엔드 에러

    RedisCache 내부에서만 발생하며 캐시 계층 밖으로 전파되지 않습니다.
    """

    def __init__(
        self,
        message: str = "Cache backend unavailable",
        key: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None
    ):
        if data is None:
            data = {}
        if key:
            data["key"] = key

        super().__init__(
            message=message,
            code=ErrorCode.CACHE_ERROR,
            data=data
        )


class ResourceNotFoundError(DiaryAPIError):
    """
    리소스를 찾을 수 없음 에러

    읽기 작업이 falsy 센티널(None)을 반환했을 때 핸들러가 사용합니다.
    404 HTTP 상태 코드에 대응합니다.
    """

    def __init__(
        self,
        message: str,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None
    ):
        if data is None:
            data = {}
        if resource_type:
            data["resource_type"] = resource_type
        if resource_id:
            data["resource_id"] = resource_id

        super().__init__(
            message=message,
            code=ErrorCode.RESOURCE_NOT_FOUND,
            data=data
        )


class ErrorHandler:
    """
    중앙 집중식 에러 처리기

    예외를 HTTP 상태 코드와 응답 본문으로 변환하고
    로깅용 에러 컨텍스트를 생성하는 유틸리티 클래스입니다.
    """

    @staticmethod
    def status_code_for(error: Exception) -> int:
        """
        예외에 대응하는 HTTP 상태 코드

        "찾을 수 없음"만 404로 매핑하고, 그 외 모든 예외는 500으로 처리합니다.
        """
        if isinstance(error, ResourceNotFoundError):
            return 404
        return 500

    @staticmethod
    def handle_error(error: Exception) -> Dict[str, Any]:
        """
        예외를 HTTP 응답 본문으로 변환

        Returns:
            Dict[str, Any]: 404는 {"message": ...}, 그 외는 {"error": ...}
        """
        if isinstance(error, ResourceNotFoundError):
            return {"message": error.message}
        if isinstance(error, DiaryAPIError):
            return {"error": error.message}
        return {"error": str(error)}

    @staticmethod
    def create_error_context(
        error: Exception,
        operation: Optional[str] = None,
        table: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        로깅을 위한 에러 컨텍스트 생성

        Args:
            error: 발생한 예외
            operation: 실패한 작업 이름
            table: 대상 테이블 이름

        Returns:
            Dict[str, Any]: error_type, error_message 및 선택적 컨텍스트
        """
        context = {
            "error_type": type(error).__name__,
            "error_message": str(error)
        }

        if operation:
            context["operation"] = operation
        if table:
            context["table"] = table

        if isinstance(error, DiaryAPIError):
            context["error_code"] = error.code.value
            context["error_data"] = error.data

        return context
