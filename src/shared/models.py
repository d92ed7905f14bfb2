"""Core data models shared by the client and the domain adapters."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class HttpMethod(str, Enum):
    """Request methods accepted by the client."""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


class RequestDescriptor(BaseModel):
    """
    One logical request against a base URL.

    Query values of None or "" are dropped when the URL is built;
    the path must already be percent-encoded.
    """
    path: str
    method: HttpMethod = HttpMethod.GET
    query: Optional[dict[str, Optional[str]]] = None
    body: Optional[Any] = None


class ExecutionType(str, Enum):
    """Type of tool execution - read operations vs write operations."""
    READ = "read"
    WRITE = "write"


class ToolDefinition(BaseModel):
    """
    Declarative definition of a domain tool.

    Tools are namespaced per domain (e.g., gmail.search_emails).
    """
    name: str = Field(..., description="Action name within the domain")
    domain: str = Field(..., description="Domain namespace")
    description: str = Field(..., description="Clear description for LLM usage")
    version: str = Field(default="1.0.0")
    input_schema: dict[str, Any] = Field(
        default_factory=dict,
        description="JSON Schema for input validation"
    )
    execution_type: ExecutionType = Field(default=ExecutionType.READ)

    @property
    def qualified_name(self) -> str:
        """Return the fully qualified tool name."""
        return f"{self.domain}.{self.name}"

    @property
    def required(self) -> list[str]:
        """Names of required input parameters."""
        return list(self.input_schema.get("required", []))


class ToolResultStatus(str, Enum):
    """Status of tool execution."""
    SUCCESS = "success"
    ERROR = "error"
    NOT_FOUND = "not_found"
    VALIDATION_ERROR = "validation_error"
    NOT_CONFIGURED = "not_configured"


class ToolResult(BaseModel):
    """Result of a tool execution."""
    tool_name: str
    status: ToolResultStatus
    data: Optional[Any] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.status == ToolResultStatus.SUCCESS


class DomainConfig(BaseModel):
    """Configuration for an application domain."""
    name: str
    description: str
    version: str = "1.0.0"
    enabled: bool = True
    max_output_chars: int = 50_000
