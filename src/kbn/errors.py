"""Exception hierarchy shared by the RAG core, the store and the CLI."""

from typing import Any


class KbnError(Exception):
    """Base error carrying a machine-readable code and optional context."""

    code: str = "KBN_ERROR"

    def __init__(
        self,
        message: str,
        *,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.context = context or {}
        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message, "context": self.context}


class ValidationError(KbnError):
    """Missing or malformed request input. Raised before any external call."""

    code = "VALIDATION_ERROR"


class NotFoundError(KbnError):
    """A referenced notebook or knowledge item does not exist."""

    code = "NOT_FOUND"


class ProviderError(KbnError):
    """An embedding, LLM, reranker, loader or vector index call failed."""

    code = "PROVIDER_ERROR"


class ConfigurationError(KbnError):
    """Invalid settings or missing provider credentials."""

    code = "CONFIGURATION_ERROR"
