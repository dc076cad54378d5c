"""
Tool registry and dispatcher.

The registry owns named, schema-described capabilities. The dispatcher
invokes them by name with per-call timeouts and bounded retries, and turns
every failure into a structured result so one broken tool never takes the
conversation down with it:

    {"tool": ..., "success": True,  "data": ..., "message": ...}
    {"tool": ..., "success": False, "error": ..., "message": ..., "data": None}
"""

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ValidationError

from ..core.errors import (
    CapabilityExecutionError, CapabilityNotFound, ConfigurationError, TransientToolError
)
from ..util.logging import logger, sanitize_payload


@dataclass(frozen=True)
class ToolContext:
    """Who is calling a tool, and on behalf of which tenant."""
    tenant_id: str
    caller_id: str = "assistant"
    conversation_id: Optional[str] = None


class NoArguments(BaseModel):
    pass


class Capability(ABC):
    """
    A named, read-only (unless declared otherwise) operation the agent may call.

    Subclasses set `name`, `description`, `parameters` (a pydantic model) and
    must declare `idempotent` explicitly; the registry refuses capabilities
    that leave it undeclared.
    """

    name: str = ""
    description: str = ""
    parameters: Type[BaseModel] = NoArguments
    idempotent: Optional[bool] = None

    @abstractmethod
    async def execute(self, args: BaseModel, context: ToolContext) -> Any:
        """Run the capability with validated arguments."""
        pass

    def definition(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters.model_json_schema()
        }


class ToolRegistry:
    """Name -> capability map; names are globally unique."""

    def __init__(self):
        self._tools: Dict[str, Capability] = {}

    def register(self, capability: Capability) -> None:
        """
        Register a capability.

        Raises:
            ConfigurationError: on a duplicate or empty name, a parameter
                schema that is not a pydantic model, or an undeclared
                idempotency flag
        """
        name = capability.name
        if not name or not name.strip():
            raise ConfigurationError(f"{type(capability).__name__} has no tool name")

        if name in self._tools:
            raise ConfigurationError(f"Tool '{name}' is already registered")

        if not (isinstance(capability.parameters, type) and issubclass(capability.parameters, BaseModel)):
            raise ConfigurationError(f"Tool '{name}' parameters must be a pydantic model")

        if not isinstance(capability.idempotent, bool):
            raise ConfigurationError(f"Tool '{name}' must declare idempotent=True or False")

        self._tools[name] = capability
        logger.log_operation("tool.registered", "success", {
            "tool": name,
            "idempotent": capability.idempotent,
            "registry_size": len(self._tools)
        })

    def get(self, name: str) -> Capability:
        try:
            return self._tools[name]
        except KeyError:
            raise CapabilityNotFound(name) from None

    def list_definitions(self) -> List[Dict[str, Any]]:
        """Function-calling manifest: name, description and JSON schema per tool."""
        return [capability.definition() for capability in self._tools.values()]

    def names(self) -> List[str]:
        return list(self._tools.keys())

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)


class ToolDispatcher:
    """
    Invoke-by-name boundary between the reasoning layer and the tools.

    Only idempotent tools are retried, and only for transient I/O failures.
    A timeout is reported as an unknown result rather than retried, to stay
    inside the per-message latency budget.
    """

    RETRYABLE = (TransientToolError, ConnectionError)

    def __init__(self, registry: ToolRegistry, timeout_sec: float = 5.0,
                 max_retries: int = 2, retry_backoff_sec: float = 0.2):
        self.registry = registry
        self.timeout_sec = timeout_sec
        self.max_retries = max_retries
        self.retry_backoff_sec = retry_backoff_sec

    async def invoke(self, name: str, args: Optional[Dict[str, Any]], context: ToolContext) -> Dict[str, Any]:
        """Execute a tool; never raises for tool-level failures."""
        start = time.monotonic()
        tenant_id = getattr(context, "tenant_id", None)

        try:
            capability = self.registry.get(name)
        except CapabilityNotFound as e:
            return self._failure(name, "CapabilityNotFound", str(e), start, tenant_id, context, attempts=0)

        if not tenant_id:
            return self._failure(name, "TenantIsolationViolation", "Tool calls require a tenant context",
                                 start, tenant_id, context, attempts=0)

        try:
            validated = capability.parameters.model_validate(args or {})
        except ValidationError as e:
            return self._failure(name, "ValidationError", f"Invalid arguments for '{name}': {e.errors()}",
                                 start, tenant_id, context, attempts=0)

        attempts = 0
        while True:
            attempts += 1
            try:
                data = await asyncio.wait_for(capability.execute(validated, context), timeout=self.timeout_sec)
            except asyncio.TimeoutError:
                return self._failure(name, "Timeout", f"'{name}' did not answer within {self.timeout_sec}s; result unknown",
                                     start, tenant_id, context, attempts)
            except self.RETRYABLE as e:
                if capability.idempotent and attempts <= self.max_retries:
                    logger.log_operation(f"tool.{name}", "retry", {
                        "tenant_id": tenant_id,
                        "attempt": attempts,
                        "reason": str(e)[:100]
                    })
                    await asyncio.sleep(self.retry_backoff_sec * attempts)
                    continue
                error = CapabilityExecutionError(name, e)
                return self._failure(name, "CapabilityExecutionError", str(error), start, tenant_id, context, attempts)
            except Exception as e:
                error = CapabilityExecutionError(name, e)
                return self._failure(name, "CapabilityExecutionError", str(error), start, tenant_id, context, attempts)

            logger.log_tool_call(name, tenant_id, True, (time.monotonic() - start) * 1000,
                                 attempts, caller_id=context.caller_id)
            return {
                "tool": name,
                "success": True,
                "data": data,
                "message": f"'{name}' completed"
            }

    async def invoke_many(self, calls: List[Dict[str, Any]], context: ToolContext) -> List[Dict[str, Any]]:
        """
        Dispatch independent calls concurrently and wait for all to settle.

        Args:
            calls: [{"name": ..., "args": {...}}, ...]

        Returns:
            One result per call, in the same order
        """
        results = await asyncio.gather(
            *(self._invoke_call(call, context) for call in calls),
            return_exceptions=True
        )

        settled = []
        for call, result in zip(calls, results):
            if isinstance(result, BaseException):
                result = {
                    "tool": call.get("name") if isinstance(call, dict) else None,
                    "success": False,
                    "error": "CapabilityExecutionError",
                    "message": str(result),
                    "data": None
                }
            settled.append(result)
        return settled

    async def _invoke_call(self, call: Any, context: ToolContext) -> Dict[str, Any]:
        if not isinstance(call, dict) or not isinstance(call.get("name"), str):
            return self._failure(None, "ValidationError", f"Malformed tool call: {call!r}"[:200],
                                 time.monotonic(), getattr(context, "tenant_id", None), context, attempts=0)
        return await self.invoke(call["name"], call.get("args"), context)

    def _failure(self, name: str, error: str, message: str, start: float, tenant_id: Optional[str],
                 context: Optional[ToolContext], attempts: int) -> Dict[str, Any]:
        logger.log_tool_call(name, tenant_id, False, (time.monotonic() - start) * 1000, attempts,
                             error=f"{error}: {sanitize_payload(message)}",
                             caller_id=getattr(context, "caller_id", None))
        return {
            "tool": name,
            "success": False,
            "error": error,
            "message": message,
            "data": None
        }
