from __future__ import annotations

from typing import List, Optional


class ConfigError(RuntimeError):
    """Raised at startup when required configuration is missing or invalid."""


class GenerationError(RuntimeError):
    """Base class for failures while turning metrics into a dashboard."""


class ProviderError(GenerationError):
    """Transport failure, non-2xx status or unusable body from the completion API."""


class ResponseParseError(GenerationError):
    """The model answered, but its content did not match the response schema."""


class AllModelsFailedError(GenerationError):
    def __init__(self, attempted: List[str], last_error: Optional[BaseException]):
        self.attempted = list(attempted)
        self.last_error = last_error
        super().__init__(
            f"all models failed (tried: {', '.join(self.attempted)}), last error: {last_error}"
        )


class GenerationTimeout(GenerationError):
    def __init__(self, attempted: List[str], last_error: Optional[BaseException] = None):
        self.attempted = list(attempted)
        self.last_error = last_error
        msg = "deadline exceeded"
        if self.attempted:
            msg += f" (tried: {', '.join(self.attempted)})"
        if last_error is not None:
            msg += f", last error: {last_error}"
        super().__init__(msg)
