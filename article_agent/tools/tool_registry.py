"""
Tool Registry for Agent Tool Calling

Manages tool registration, argument validation, and execution.
"""

import inspect
import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from article_agent.errors import SearchProviderError, ToolInputError
from article_agent.utils import structured_log

logger = logging.getLogger(__name__)

TOOL_ERROR_PREFIX = "Error: "


class ToolResultStatus(str, Enum):
    """Tool execution result status."""

    SUCCESS = "success"
    ERROR = "error"


@dataclass
class ToolResult:
    """Result of tool execution."""

    status: ToolResultStatus
    result: Any
    error: Optional[str] = None
    execution_time: Optional[float] = None

    @property
    def ok(self) -> bool:
        return self.status == ToolResultStatus.SUCCESS

    def to_model_output(self) -> str:
        """Render the payload handed back to the model as the tool's output."""
        if not self.ok:
            return f"{TOOL_ERROR_PREFIX}{self.error}"
        if isinstance(self.result, str):
            return self.result
        return json.dumps(self.result, ensure_ascii=False, default=str)


class ToolParameter(BaseModel):
    """Parameter definition for a tool."""

    name: str
    type: str  # "string", "integer", "number", "boolean"
    description: str
    required: bool = True
    enum: Optional[List[str]] = None


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err.get("loc", ())) or "arguments"
        parts.append(f"{location}: {err.get('msg')}")
    return "; ".join(parts)


class Tool(BaseModel):
    """Tool definition for function calling.

    Arguments are validated either against `args_model` (a pydantic model whose
    instance is passed to `execute_fn`) or against the flat `parameters` list
    (validated values are passed as keyword arguments).
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str = Field(description="Tool name")
    description: str = Field(description="Tool description")
    parameters: List[ToolParameter] = Field(default_factory=list, description="Tool parameters")
    args_model: Optional[Type[BaseModel]] = Field(default=None, exclude=True)
    execute_fn: Optional[Callable[..., Any]] = Field(
        default=None, exclude=True, description="Execution function"
    )

    def json_schema(self) -> Dict[str, Any]:
        """JSON schema of the tool's arguments."""
        if self.args_model is not None:
            return self.args_model.model_json_schema()

        properties = {}
        required = []
        for param in self.parameters:
            prop_def: Dict[str, Any] = {"type": param.type, "description": param.description}
            if param.enum:
                prop_def["enum"] = param.enum
            properties[param.name] = prop_def
            if param.required:
                required.append(param.name)
        return {"type": "object", "properties": properties, "required": required}

    def validate_arguments(self, arguments: Dict[str, Any]) -> Any:
        """
        Validate tool arguments.

        Args:
            arguments: Raw arguments from the model

        Returns:
            The args_model instance, or the checked keyword dict

        Raises:
            ToolInputError: If the arguments do not satisfy the schema
        """
        if not isinstance(arguments, dict):
            raise ToolInputError("Tool arguments must be a JSON object")

        if self.args_model is not None:
            try:
                return self.args_model.model_validate(arguments)
            except ValidationError as exc:
                raise ToolInputError(_format_validation_error(exc)) from exc

        known = {param.name for param in self.parameters}
        unexpected = sorted(set(arguments) - known)
        if unexpected:
            raise ToolInputError(f"Unexpected parameter(s): {', '.join(unexpected)}")

        for param in self.parameters:
            if param.name not in arguments:
                if param.required:
                    raise ToolInputError(f"Missing required parameter: {param.name}")
                continue

            value = arguments[param.name]
            if param.type == "string" and not isinstance(value, str):
                raise ToolInputError(f"Parameter {param.name} must be string")
            if param.type == "integer" and (isinstance(value, bool) or not isinstance(value, int)):
                raise ToolInputError(f"Parameter {param.name} must be integer")
            if param.type == "number" and (
                isinstance(value, bool) or not isinstance(value, (int, float))
            ):
                raise ToolInputError(f"Parameter {param.name} must be number")
            if param.type == "boolean" and not isinstance(value, bool):
                raise ToolInputError(f"Parameter {param.name} must be boolean")
            if param.enum and value not in param.enum:
                raise ToolInputError(f"Parameter {param.name} must be one of {param.enum}")

        return dict(arguments)

    async def execute(self, arguments: Dict[str, Any]) -> ToolResult:
        """
        Validate and execute the tool.

        Input and retrieval failures become an error ToolResult so the model
        can correct itself. Any other exception propagates to the caller.
        """
        if not self.execute_fn:
            return ToolResult(
                status=ToolResultStatus.ERROR,
                result=None,
                error="Tool execution function not defined",
            )

        start_time = time.monotonic()
        try:
            validated = self.validate_arguments(arguments)
            if isinstance(validated, BaseModel):
                result = self.execute_fn(validated)
            else:
                result = self.execute_fn(**validated)
            if inspect.isawaitable(result):
                result = await result
        except (ToolInputError, SearchProviderError) as e:
            logger.warning(f"Tool {self.name} rejected: {e}")
            return ToolResult(
                status=ToolResultStatus.ERROR,
                result=None,
                error=str(e),
                execution_time=time.monotonic() - start_time,
            )

        return ToolResult(
            status=ToolResultStatus.SUCCESS,
            result=result,
            execution_time=time.monotonic() - start_time,
        )


class ToolRegistry:
    """Registry for managing tools."""

    def __init__(self):
        self.tools: Dict[str, Tool] = {}

    def register(self, tool: Tool):
        """
        Register a tool.

        Args:
            tool: Tool to register
        """
        if tool.name in self.tools:
            logger.warning(f"Tool {tool.name} already registered, overwriting")

        self.tools[tool.name] = tool
        logger.debug(f"Registered tool: {tool.name}")

    def get_tool(self, name: str) -> Optional[Tool]:
        return self.tools.get(name)

    def list_tools(self) -> List[str]:
        """List all registered tool names."""
        return list(self.tools.keys())

    async def execute_tool(
        self, name: str, arguments: Dict[str, Any], call_id: Optional[str] = None
    ) -> ToolResult:
        """
        Execute a tool by name.

        Args:
            name: Tool name
            arguments: Tool arguments
            call_id: Model-assigned call id, for the audit log

        Returns:
            ToolResult
        """
        tool = self.get_tool(name)
        if not tool:
            result = ToolResult(
                status=ToolResultStatus.ERROR,
                result=None,
                error=f"Tool {name} not found",
            )
        else:
            result = await tool.execute(arguments)

        structured_log.log_tool_call(
            name,
            result.status.value,
            call_id=call_id,
            latency_ms=int((result.execution_time or 0) * 1000),
            error=result.error,
        )
        return result
