"""Exception taxonomy for the analysis pipeline.

Every failure that aborts an analysis derives from ``AnalysisError`` so
callers can surface a single user-facing message.
"""

from typing import Optional


class AnalysisError(Exception):
    """Base class for pipeline-terminal failures."""


class CredentialError(AnalysisError):
    """An API key is missing or rejected by its provider."""


class ProviderError(AnalysisError):
    """The quote or LLM provider call failed."""

    def __init__(
        self,
        provider: str,
        message: str,
        status_code: Optional[int] = None,
    ) -> None:
        self.provider = provider
        self.status_code = status_code
        super().__init__(f"{provider}: {message}")


class ParseError(AnalysisError):
    """The LLM response could not be mapped to an analysis."""


class ChartError(AnalysisError):
    """Chart rendering failed."""


class UnknownStrategyError(KeyError):
    """No strategy is registered under the requested name."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "Unknown strategy"
