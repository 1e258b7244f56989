"""
Tool registry for termagent.

This module provides a decorator to declare the built-in tools and a registry to look them up by
name.  A tool is a handler ``handler(parameters, context) -> ExecutionResult`` plus a description
and an informal parameter schema that is shown to the model.

Handlers may raise; :meth:`ToolRegistry.invoke` is the boundary that turns every exception into a
failed :class:`~termagent.core.schema.ExecutionResult`, so nothing crosses into the executor.
"""

import logging
import re
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
)

from termagent.core.sandbox import (
    AccessDenied,
    SandboxContext,
)
from termagent.core.schema import (
    ErrorKind,
    ExecutionResult,
)

logger = logging.getLogger(__name__)

ToolHandler = Callable[[Mapping[str, Any], SandboxContext], ExecutionResult]


class ToolInputError(ValueError):
    """Raised by a handler when a required parameter is missing or malformed."""


class ToolDescriptor(BaseModel):
    """A named, registered operation."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    parameters: Dict[str, str] = Field(default_factory=dict)
    handler: ToolHandler

    def signature(self) -> str:
        """One-line form used in the system prompt."""
        params = ", ".join(f"{p}: {shape}" for p, shape in self.parameters.items())
        return f"- {self.name}({params}): {self.description}"


class ToolRegistry:
    """Catalogue of tools, keyed by name.  Populated once, then only read."""

    def __init__(self, descriptors: Iterable[ToolDescriptor] = ()):
        self._tools: Dict[str, ToolDescriptor] = {}
        for descriptor in descriptors:
            self.register(descriptor)

    def register(self, descriptor: ToolDescriptor) -> None:
        """
        Add *descriptor*.

        Raises
        ------
        ValueError
            If a tool with the same name is already registered.
        """
        if descriptor.name in self._tools:
            raise ValueError(f"Tool '{descriptor.name}' is already registered.")
        logger.debug("Registering tool '%s'", descriptor.name)
        self._tools[descriptor.name] = descriptor

    def has(self, name: str) -> bool:
        return name in self._tools

    def get(self, name: str) -> ToolDescriptor | None:
        return self._tools.get(name)

    def names(self) -> List[str]:
        return list(self._tools)

    def descriptors(self) -> List[ToolDescriptor]:
        return list(self._tools.values())

    def invoke(
        self, name: str, parameters: Mapping[str, Any] | None, context: SandboxContext
    ) -> ExecutionResult:
        """
        Run tool *name* with *parameters* inside *context*.

        Never raises: unknown tools, sandbox violations and handler errors all come back as a
        failed result tagged with the tool name.
        """
        descriptor = self._tools.get(name)
        if descriptor is None:
            return ExecutionResult.failure(
                f"Unknown tool: {name}", kind=ErrorKind.UNKNOWN_TOOL, tool=name
            )

        params = dict(parameters or {})
        logger.debug("Executing tool '%s' with params=%s", name, params)
        try:
            result = descriptor.handler(params, context)
        except AccessDenied as exc:
            logger.warning("Tool '%s' blocked: %s", name, exc)
            result = ExecutionResult.failure(str(exc), kind=ErrorKind.ACCESS_DENIED)
        except (ToolInputError, OSError, re.error) as exc:
            logger.warning("Tool '%s' failed: %s", name, exc)
            result = ExecutionResult.failure(_describe(exc))
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unhandled error in tool '%s'", name)
            result = ExecutionResult.failure(f"Tool '{name}' raised an error: {exc}")

        result.tool = name
        return result


def _describe(exc: Exception) -> str:
    if isinstance(exc, OSError) and exc.strerror and exc.filename:
        return f"{exc.strerror}: {exc.filename}"
    if isinstance(exc, re.error):
        return f"Invalid pattern: {exc}"
    return str(exc) or type(exc).__name__


# ---------------------------------------------------------------------------
# Built-in tool declarations
# ---------------------------------------------------------------------------
_BUILTIN_TOOLS: List[ToolDescriptor] = []
"""Descriptors declared with :func:`register_tool`, in declaration order."""


def register_tool(
    name: str, description: str, parameters: Mapping[str, str] | None = None
) -> Callable[[ToolHandler], ToolHandler]:
    """
    Declare a built-in tool.

    Used as a decorator on the handler::

        @register_tool("read_file", "Read contents of a file", {"filepath": "string"})
        def read_file(params, context):
            ...

    Raises
    ------
    ValueError
        If a tool with the same name has already been declared.
    """
    if any(d.name == name for d in _BUILTIN_TOOLS):
        raise ValueError(f"Tool '{name}' is already registered.")

    def wrapper(fn: ToolHandler) -> ToolHandler:
        _BUILTIN_TOOLS.append(
            ToolDescriptor(
                name=name, description=description, parameters=dict(parameters or {}), handler=fn
            )
        )
        return fn

    return wrapper


def build_registry() -> ToolRegistry:
    """Return a fresh registry holding every built-in tool."""
    # Importing the modules runs their @register_tool declarations
    from termagent.tools import (  # pylint: disable=import-outside-toplevel
        filesystem,  # noqa: F401
        system,  # noqa: F401
    )

    return ToolRegistry(_BUILTIN_TOOLS)


# ---------------------------------------------------------------------------
# Parameter helpers shared by the handlers
# ---------------------------------------------------------------------------
FILE_ALIASES = ("filepath", "path", "filename")
FOLDER_ALIASES = ("folderpath", "dirpath", "path", "filepath")
SOURCE_ALIASES = ("source", "from", "src", "filepath")
DESTINATION_ALIASES = ("destination", "to", "dest", "target")


def pick(params: Mapping[str, Any], *names: str, required: bool = True, label: str = "") -> Any:
    """
    Return the first non-empty value among the alias *names*.

    Raises :class:`ToolInputError` naming the accepted aliases if *required* and none is set.
    """
    for name in names:
        value = params.get(name)
        if value is not None and value != "":
            return value
    if required:
        accepted = ", ".join(f'"{n}"' for n in names)
        raise ToolInputError(f"No {label or names[0]} provided. Use {accepted} parameter.")
    return None


def flag(params: Mapping[str, Any], *names: str, default: bool = False) -> bool:
    """Read a boolean option, accepting the string forms models tend to emit."""
    for name in names:
        if name in params and params[name] is not None:
            value = params[name]
            if isinstance(value, str):
                return value.strip().lower() in {"true", "yes", "1", "on"}
            return bool(value)
    return default
