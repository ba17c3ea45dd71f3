"""Typed error model with stable, machine-readable error codes."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum


class ErrorCode(StrEnum):
    """Stable error identifiers used across API surfaces."""

    VALIDATION = "E_VALIDATION"
    CONFIG = "E_CONFIG"
    LOCKFILE = "E_LOCKFILE"
    MALFORMED_ENTRY = "E_MALFORMED_ENTRY"
    STUB_SYNTHESIS = "E_STUB_SYNTHESIS"
    VENDOR_TREE = "E_VENDOR_TREE"
    POLICY = "E_POLICY"


class LockfilterError(Exception):
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

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "code": self.code,
            "message": str(self),
            "context": dict(self.context),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        return payload


class ValidationError(LockfilterError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.VALIDATION, hint=hint, context=context)


class ConfigError(LockfilterError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.CONFIG, hint=hint, context=context)


class LockfileError(LockfilterError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
        code: ErrorCode = ErrorCode.LOCKFILE,
    ) -> None:
        super().__init__(message, code=code, hint=hint, context=context)


class MalformedEntryError(LockfileError):
    """A `[[package]]` block violates the expected structure.

    ``index`` is the zero-based position of the offending block among the
    document's package blocks.
    """

    index: int

    def __init__(
        self,
        message: str,
        *,
        index: int,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        merged = {"entry_index": str(index), **dict(context or {})}
        super().__init__(
            message,
            hint=hint,
            context=merged,
            code=ErrorCode.MALFORMED_ENTRY,
        )
        self.index = index


class StubSynthesisError(LockfilterError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.STUB_SYNTHESIS, hint=hint, context=context)


class VendorTreeError(LockfilterError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.VENDOR_TREE, hint=hint, context=context)


class PolicyError(LockfilterError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.POLICY, hint=hint, context=context)


class UnresolvedPatternWarning(UserWarning):
    """Warning raised when an exclusion rule matches no lock entry."""


class AmbiguousDependencyWarning(UserWarning):
    """Warning raised when a bare dependency name resolves to several retained versions."""


class ChecksumUnavailableWarning(UserWarning):
    """Warning raised when a stub is synthesized without a known checksum."""


class LockTreeDivergenceWarning(UserWarning):
    """Warning raised when vendor pruning leaves the lock document and tree out of sync."""


__all__ = [
    "AmbiguousDependencyWarning",
    "ChecksumUnavailableWarning",
    "ConfigError",
    "ErrorCode",
    "LockTreeDivergenceWarning",
    "LockfileError",
    "LockfilterError",
    "MalformedEntryError",
    "PolicyError",
    "StubSynthesisError",
    "UnresolvedPatternWarning",
    "ValidationError",
    "VendorTreeError",
]
