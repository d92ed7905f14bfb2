"""Shared configuration, logging and models."""

from shared.models import (
    DomainConfig,
    HttpMethod,
    RequestDescriptor,
    ToolDefinition,
    ToolResult,
    ToolResultStatus,
)
from shared.config import Settings, get_settings
from shared.logging import get_logger, setup_logging

__all__ = [
    "DomainConfig",
    "HttpMethod",
    "RequestDescriptor",
    "ToolDefinition",
    "ToolResult",
    "ToolResultStatus",
    "Settings",
    "get_settings",
    "get_logger",
    "setup_logging",
]
