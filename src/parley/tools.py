import asyncio
import inspect
import json
import logging
import re
from collections.abc import Callable, Iterable
from typing import Any

from pydantic import BaseModel, Field

from parley.errors import LLMRecoverableError
from parley.message import ConversationMessage, ToolCallRequest

logger = logging.getLogger(__name__)

_JSON_TYPES = {
    "str": "string",
    "int": "integer",
    "float": "number",
    "bool": "boolean",
    "NoneType": "null",
    "dict": "object",
    "list": "array",
    "tuple": "array",
    "set": "array",
}


def _parse_param_descriptions(func: Callable) -> dict[str, str]:
    """Pull per-parameter descriptions out of a Google or Sphinx docstring."""
    doc = inspect.getdoc(func) or ""
    descriptions: dict[str, str] = {}

    for name, text in re.findall(r":param\s+(\w+):\s*(.+)", doc):
        descriptions[name] = text.strip()

    in_args = False
    for line in doc.splitlines():
        stripped = line.strip()
        if stripped in ("Args:", "Arguments:", "Parameters:"):
            in_args = True
            continue
        if in_args:
            if not stripped:
                continue
            if not line.startswith((" ", "\t")):
                break
            match = re.match(r"(\w+)\s*(?:\([^)]*\))?\s*:\s*(.+)", stripped)
            if match:
                descriptions[match.group(1)] = match.group(2).strip()
    return descriptions


def _build_parameters_schema(func: Callable) -> tuple[dict, list[str]]:
    descriptions = _parse_param_descriptions(func)
    properties: dict[str, dict[str, str]] = {}
    required: list[str] = []
    for name, param in inspect.signature(func).parameters.items():
        annotation = param.annotation
        type_name = getattr(annotation, "__name__", "str")
        properties[name] = {
            "type": _JSON_TYPES.get(type_name, "string"),
            "description": descriptions.get(name, ""),
        }
        if param.default is inspect.Parameter.empty:
            required.append(name)
    return {"type": "object", "properties": properties}, required


class Tool(BaseModel):
    """A Python function exposed to the model as a callable tool."""

    func: Callable = Field(exclude=True)
    name: str
    description: str = ""
    model_config = {"arbitrary_types_allowed": True}

    def __init__(self, func: Callable, **kwargs):
        doc = inspect.getdoc(func) or ""
        super().__init__(
            func=func,
            name=kwargs.pop("name", func.__name__),
            description=kwargs.pop("description", doc.split("\n\n")[0]),
            **kwargs,
        )

    def tool_schema(self) -> dict:
        """Return an OpenAI-compatible function tool schema."""
        parameters, required = _build_parameters_schema(self.func)
        parameters["required"] = required
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": parameters,
            },
        }

    async def __call__(self, **kwargs) -> Any:
        if inspect.iscoroutinefunction(self.func):
            return await self.func(**kwargs)
        return self.func(**kwargs)


def tool(func: Callable) -> Tool:
    """Decorator turning a plain or async function into a :class:`Tool`."""
    return Tool(func)


class ToolRegistry:
    """A ready-made tool handler backed by ``@tool`` functions.

    Pass an instance as the ``tool_handler`` of a conversation. Every
    tool call of one assistant message runs concurrently and yields one
    tool message carrying the call id. Failures become error text for the
    model to read rather than exceptions.
    """

    def __init__(self, tools: Iterable[Tool]):
        self.tools = {t.name: t for t in tools}

    def schemas(self) -> list[dict]:
        return [t.tool_schema() for t in self.tools.values()]

    async def __call__(self, message: ConversationMessage) -> list[ConversationMessage]:
        calls = message.tool_calls or ()
        outputs = await asyncio.gather(*(self._execute_one(tc) for tc in calls))
        return [
            ConversationMessage.tool_result(output, tool_call_id=tc.id)
            for tc, output in zip(calls, outputs)
        ]

    async def _execute_one(self, tc: ToolCallRequest) -> str:
        tool_obj = self.tools.get(tc.function_name)
        if tool_obj is None:
            logger.warning(f"Tool not found: {tc.function_name}")
            return f"Error: tool '{tc.function_name}' not found"

        try:
            params = json.loads(tc.arguments_text or "{}")
        except json.JSONDecodeError as e:
            logger.warning(f"Invalid JSON in arguments for {tc.function_name}: {e}")
            return f"Error: invalid arguments: {e}"
        if not isinstance(params, dict):
            return f"Error: arguments for {tc.function_name} must be a JSON object"

        logger.info(f"Calling {tc.function_name} with {params}")
        try:
            result = await tool_obj(**params)
        except LLMRecoverableError as e:
            logger.info(f"Tool {tc.function_name} requested retry: {e}")
            return str(e)
        except Exception as e:
            logger.error(f"Tool {tc.function_name} raised: {e}")
            return f"Error calling {tc.function_name}: {e}"

        return result if isinstance(result, str) else json.dumps(result)
