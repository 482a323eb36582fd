"""Execution backends for replaying flows.

- DocumentContext: in-page, over a parsed document
- PlaywrightContext: remote browser driven by playwright
- WebDriverContext: remote browser driven over the W3C WebDriver protocol

Usage:
    from flowreplay.adapters import create_context

    async with create_context("webdriver") as context:
        await context.navigate("https://example.com")
"""

from .base import BackendConfig, ExecutionContext, ReadProperty, create_context
from .document import DispatchedEvent, DocumentContext, parse_document
from .playwright import PlaywrightContext
from .webdriver import WebDriverContext

__all__ = [
    "BackendConfig",
    "ExecutionContext",
    "ReadProperty",
    "create_context",
    "DispatchedEvent",
    "DocumentContext",
    "parse_document",
    "PlaywrightContext",
    "WebDriverContext",
]
