"""Public package entrypoint for the aotc build driver."""

__version__ = "0.1.0"

from .driver import BuildDriver, build  # noqa: E402
from .errors import (  # noqa: E402
    AotcError,
    ConflictingOptionsError,
    ErrorCode,
    InvalidArchitectureError,
    InvalidFirstInputError,
    InvalidInputError,
    InvalidSDKError,
    MissingOutputError,
    ToolFailureError,
    ToolNotFoundError,
    UnsupportedStaticError,
    ValidationError,
)
from .models import (  # noqa: E402
    ARCH_TO_BACKEND,
    SUPPORTED_ARCHS,
    BuildRequest,
    BuildResult,
    CompiledUnit,
    EntryPoint,
    LinkInput,
)
from .session import TempSession  # noqa: E402
from .toolchain import Toolchain, ToolPaths  # noqa: E402

__all__ = [
    "ARCH_TO_BACKEND",
    "AotcError",
    "BuildDriver",
    "BuildRequest",
    "BuildResult",
    "CompiledUnit",
    "ConflictingOptionsError",
    "EntryPoint",
    "ErrorCode",
    "InvalidArchitectureError",
    "InvalidFirstInputError",
    "InvalidInputError",
    "InvalidSDKError",
    "LinkInput",
    "MissingOutputError",
    "SUPPORTED_ARCHS",
    "TempSession",
    "ToolFailureError",
    "ToolNotFoundError",
    "ToolPaths",
    "Toolchain",
    "UnsupportedStaticError",
    "ValidationError",
    "build",
]
