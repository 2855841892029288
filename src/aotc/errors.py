"""Typed build-driver error model with stable, machine-readable error codes."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from enum import StrEnum


class ErrorCode(StrEnum):
    """Stable error identifiers used across API and CLI surfaces."""

    VALIDATION = "E_VALIDATION"
    CONFLICTING_OPTIONS = "E_CONFLICTING_OPTIONS"
    INVALID_ARCH = "E_INVALID_ARCH"
    INVALID_SDK = "E_INVALID_SDK"
    UNSUPPORTED_STATIC = "E_UNSUPPORTED_STATIC"
    INVALID_INPUT = "E_INVALID_INPUT"
    MISSING_OUTPUT = "E_MISSING_OUTPUT"
    INVALID_FIRST_INPUT = "E_INVALID_FIRST_INPUT"
    TOOL_NOT_FOUND = "E_TOOL_NOT_FOUND"
    TOOL_FAILURE = "E_TOOL_FAILURE"


class AotcError(Exception):
    """Base error class that carries code, optional hint, and context."""

    code: str
    hint: str | None
    context: Mapping[str, str]

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code.value
        self.hint = hint
        self.context = dict(context or {})

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        if self.context:
            for k, v in self.context.items():
                if v:
                    parts.append(f"  {k}: {v}")
        return "\n".join(parts)

    @property
    def message(self) -> str:
        return super().__str__()

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "code": self.code,
            "message": str(self),
            "context": dict(self.context),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        return payload


class ValidationError(AotcError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.VALIDATION, hint=hint, context=context)


class ConflictingOptionsError(AotcError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(
            message, code=ErrorCode.CONFLICTING_OPTIONS, hint=hint, context=context
        )


class InvalidArchitectureError(AotcError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.INVALID_ARCH, hint=hint, context=context)


class InvalidSDKError(AotcError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.INVALID_SDK, hint=hint, context=context)


class UnsupportedStaticError(AotcError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(
            message, code=ErrorCode.UNSUPPORTED_STATIC, hint=hint, context=context
        )


class InvalidInputError(AotcError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.INVALID_INPUT, hint=hint, context=context)


class MissingOutputError(AotcError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.MISSING_OUTPUT, hint=hint, context=context)


class InvalidFirstInputError(AotcError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(
            message, code=ErrorCode.INVALID_FIRST_INPUT, hint=hint, context=context
        )


class ToolNotFoundError(AotcError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.TOOL_NOT_FOUND, hint=hint, context=context)


class ToolFailureError(AotcError):
    """An external tool exited non-zero; keeps its command line and output verbatim."""

    command: tuple[str, ...]
    output: str
    returncode: int

    def __init__(
        self,
        message: str,
        *,
        command: Sequence[str],
        output: str,
        returncode: int,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        merged = {"command": " ".join(command), "returncode": str(returncode)}
        merged.update(context or {})
        super().__init__(message, code=ErrorCode.TOOL_FAILURE, hint=hint, context=merged)
        self.command = tuple(command)
        self.output = output
        self.returncode = returncode

    def to_dict(self) -> dict[str, object]:
        payload = super().to_dict()
        payload["output"] = self.output
        return payload


__all__ = [
    "AotcError",
    "ConflictingOptionsError",
    "ErrorCode",
    "InvalidArchitectureError",
    "InvalidFirstInputError",
    "InvalidInputError",
    "InvalidSDKError",
    "MissingOutputError",
    "ToolFailureError",
    "ToolNotFoundError",
    "UnsupportedStaticError",
    "ValidationError",
]
