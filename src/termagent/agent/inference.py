"""
Inference backend interface for termagent.

This module is the only place that *directly* calls an LLM.  Everything else (agent loop, tools,
extractor) stays model-agnostic and only sees ``chat(messages) -> str``.

We support one back-end out of the box:

1. **Ollama** (or anything speaking its ``/api/chat`` + ``/api/tags`` JSON API) over HTTP.

Additional providers can be added by subclassing :class:`BaseBackend` and registering via
:func:`register_backend`.
"""

import logging
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Sequence,
    Type,
)

import httpx
from pydantic import (
    BaseModel,
    Field,
    ValidationError,
)

from termagent.config import settings
from termagent.core.schema import ChatMessage

logger = logging.getLogger(__name__)


class BackendUnavailable(RuntimeError):
    """Raised when the inference backend cannot be reached or answers nonsense."""

    def __init__(self, message: str, hint: str | None = None):
        super().__init__(message)
        self.hint = hint


# ---------------------------------------------------------------------------
# Pydantic models for response validation
# ---------------------------------------------------------------------------
class _ReplyMessage(BaseModel):
    content: str = ""


class ChatReply(BaseModel):
    """Validates ``/api/chat`` responses."""

    message: _ReplyMessage


class ModelInfo(BaseModel):
    """One installed model as reported by ``/api/tags``."""

    name: str
    size: int = 0

    @property
    def size_gb(self) -> float:
        return self.size / 1024**3


class _ModelList(BaseModel):
    models: List[ModelInfo] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Registry helpers
# ---------------------------------------------------------------------------
_BACKEND_REGISTRY: Dict[str, Type["BaseBackend"]] = {}


def register_backend(name: str) -> Callable:
    """Decorator to register a backend class under *name*."""

    def wrapper(cls: Type["BaseBackend"]) -> Type["BaseBackend"]:
        _BACKEND_REGISTRY[name] = cls
        return cls

    return wrapper


def load_backend(name: str | None = None, **kwargs: Any) -> "BaseBackend":
    """
    Factory that returns an instantiated backend.

    Fallback order:
    1. *name* arg
    2. ``settings.BACKEND`` env option
    """

    target = name or settings.BACKEND
    cls = _BACKEND_REGISTRY.get(target.lower())
    if cls is None:
        raise ValueError(f"Backend '{target}' is not registered.")
    return cls(**kwargs)


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------
class BaseBackend(ABC):
    """Abstract request/response chat backend."""

    model: str | None = None

    @abstractmethod
    def chat(self, messages: Sequence[ChatMessage]) -> str:
        """Send *messages* and return the assistant's text.  Raises :class:`BackendUnavailable`."""

    @abstractmethod
    def list_models(self) -> List[ModelInfo]:
        """Return the installed models.  Raises :class:`BackendUnavailable`."""

    def check_connection(self) -> bool:
        """True if :meth:`list_models` succeeds."""
        try:
            self.list_models()
        except BackendUnavailable as exc:
            logger.warning("Backend not reachable: %s", exc)
            return False
        return True


# ---------------------------------------------------------------------------
# Concrete backends
# ---------------------------------------------------------------------------
@register_backend("ollama")
class OllamaBackend(BaseBackend):
    """Ollama HTTP backend with httpx client and Pydantic validation."""

    HINT = "Make sure Ollama is running:  ollama serve"

    def __init__(
        self,
        base_url: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.OLLAMA_URL).rstrip("/")
        self.model = model or settings.MODEL
        self.timeout = timeout or settings.REQUEST_TIMEOUT
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=self._transport)

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            with self._client() as client:
                resp = client.request(method, path, **kwargs)
                resp.raise_for_status()
                return resp.json()
        except httpx.HTTPStatusError as e:
            logger.error("Backend returned HTTP %s for %s", e.response.status_code, path)
            raise BackendUnavailable(
                f"Backend error: HTTP {e.response.status_code} from {self.base_url}{path}",
                hint=self.HINT,
            ) from e
        except httpx.HTTPError as e:
            logger.error("Backend request error: %s", str(e))
            raise BackendUnavailable(
                f"Cannot connect to {self.base_url}: {e}", hint=self.HINT
            ) from e
        except ValueError as e:
            logger.error("Backend returned invalid JSON: %s", str(e))
            raise BackendUnavailable(f"Invalid response from {self.base_url}{path}") from e

    def chat(self, messages: Sequence[ChatMessage]) -> str:
        if not self.model:
            raise BackendUnavailable("No model selected", hint="Pull one with:  ollama pull llama3")

        payload = {
            "model": self.model,
            "messages": [m.model_dump() for m in messages],
            "stream": False,
            "options": {
                "temperature": settings.TEMPERATURE,
                "top_p": settings.TOP_P,
                "top_k": settings.TOP_K,
            },
        }
        data = self._request("POST", "/api/chat", json=payload)
        try:
            content = ChatReply.model_validate(data).message.content
        except ValidationError as e:
            logger.error("Failed to parse backend reply: %s", e)
            raise BackendUnavailable("Unexpected reply shape from /api/chat") from e

        logger.debug("Backend reply: %s", content)
        return content

    def list_models(self) -> List[ModelInfo]:
        data = self._request("GET", "/api/tags")
        try:
            return _ModelList.model_validate(data).models
        except ValidationError as e:
            logger.error("Failed to parse model list: %s", e)
            raise BackendUnavailable("Unexpected reply shape from /api/tags") from e
