"""Build-pipeline interception strategies."""

from .hooks import CallbackHooks, ToolchainHooks
from .orchestrator import InterceptedHooks, InterceptionReport, Interceptor

__all__ = [
    "CallbackHooks",
    "InterceptedHooks",
    "InterceptionReport",
    "Interceptor",
    "ToolchainHooks",
]
