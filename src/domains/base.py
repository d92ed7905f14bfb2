"""Base classes for domain adapters.

All adapters must:
- Translate tool calls to API requests through an ApiClient
- Normalize and filter responses
- Turn client errors into ToolResult values
- Never make cross-domain calls
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional

from shared.logging import get_logger, log_context
from shared.schema import validate_input
from shared.models import (
    DomainConfig,
    ToolDefinition,
    ToolResult,
    ToolResultStatus,
)
from api_client import ApiClient, ApiConnectionError, ApiRequestError, ApiClientError

logger = get_logger(__name__)

Handler = Callable[[dict[str, Any]], Awaitable[Any]]


class BaseAdapter(ABC):
    """
    Base class for API-backed domain adapters.

    Subclasses declare tools and map each action to an async handler;
    execute() takes care of validation, error mapping and output capping.
    """

    def __init__(self, config: DomainConfig, client: ApiClient) -> None:
        self.config = config
        self.domain = config.name
        self.client = client
        self._tools: dict[str, ToolDefinition] = {}

    @property
    def tools(self) -> list[ToolDefinition]:
        """Return all tool definitions for this domain."""
        return list(self._tools.values())

    def get_tool(self, name: str) -> Optional[ToolDefinition]:
        """Get a tool definition by name."""
        return self._tools.get(name)

    @property
    @abstractmethod
    def handlers(self) -> dict[str, Handler]:
        """Map action names to their handlers."""
        pass

    async def execute(self, action: str, parameters: dict[str, Any]) -> ToolResult:
        """
        Execute a tool action.

        Args:
            action: Action name (without domain prefix)
            parameters: Tool parameters

        Returns:
            Tool execution result
        """
        handler = self.handlers.get(action)
        tool = self.get_tool(action)
        if handler is None or tool is None:
            return self._not_found(action)

        errors = validate_input(parameters, tool.input_schema)
        if errors:
            return self._error(
                action,
                "; ".join(errors),
                "VALIDATION_ERROR",
                ToolResultStatus.VALIDATION_ERROR
            )

        with log_context(domain=self.domain, action=action):
            logger.debug("Domain action")
            try:
                data = await handler(parameters)
            except ApiRequestError as e:
                return self._error(action, str(e), f"HTTP_{e.status_code}")
            except ApiConnectionError as e:
                return self._error(action, str(e), "CONNECTION_ERROR")
            except ApiClientError as e:
                return self._error(action, str(e), "CLIENT_ERROR")

        return ToolResult(
            tool_name=f"{self.domain}.{action}",
            status=ToolResultStatus.SUCCESS,
            data=self._render(data),
            metadata={"tool": action}
        )

    def _render(self, data: Any) -> str:
        output = data if isinstance(data, str) else json.dumps(data, indent=2)
        if len(output) > self.config.max_output_chars:
            output = output[:self.config.max_output_chars] + "\n\n[TRUNCATED]"
        return output

    def _error(
        self,
        action: str,
        message: str,
        code: str = "ERROR",
        status: ToolResultStatus = ToolResultStatus.ERROR
    ) -> ToolResult:
        """Create an error result."""
        logger.warning("Domain action failed", domain=self.domain, action=action, error_code=code)
        return ToolResult(
            tool_name=f"{self.domain}.{action}",
            status=status,
            error=message,
            error_code=code,
            metadata={"tool": action}
        )

    def _not_found(self, action: str) -> ToolResult:
        """Create a not found result."""
        return ToolResult(
            tool_name=f"{self.domain}.{action}",
            status=ToolResultStatus.NOT_FOUND,
            error=f"Action '{action}' not found in domain '{self.domain}'",
            error_code="ACTION_NOT_FOUND"
        )

    async def close(self) -> None:
        """Close the underlying API client."""
        await self.client.close()
