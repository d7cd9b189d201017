"""flagengine ライブラリの例外型定義"""

from __future__ import annotations


class FlagEngineError(Exception):
    """flagengine ライブラリのエラー基底クラス。"""

    def __init__(
        self,
        code: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"{self.code}: {super().__str__()}"


class FlagEngineErrorCodes:
    """FlagEngineError のエラーコード定数。"""

    INVALID_FLAG_DEFINITION: str = "INVALID_FLAG_DEFINITION"
    MISSING_CONTEXT: str = "MISSING_CONTEXT"
    HTTP_ERROR: str = "HTTP_ERROR"
    UNAUTHORIZED: str = "UNAUTHORIZED"
    FORBIDDEN: str = "FORBIDDEN"
    READ_FILE: str = "READ_FILE_ERROR"
    PARSE_YAML: str = "PARSE_YAML_ERROR"
    CONFIG_VALIDATION: str = "CONFIG_VALIDATION_ERROR"


class InvalidFlagDefinitionError(FlagEngineError):
    """フラグ定義が検証に失敗した場合のエラー。"""

    def __init__(self, field: str, message: str, cause: Exception | None = None) -> None:
        super().__init__(FlagEngineErrorCodes.INVALID_FLAG_DEFINITION, message, cause)
        self.field = field


class MissingContextError(FlagEngineError):
    """評価コンテキストに user_id が無い場合のエラー。"""

    def __init__(self, message: str = "user_id is required for evaluation") -> None:
        super().__init__(FlagEngineErrorCodes.MISSING_CONTEXT, message)
