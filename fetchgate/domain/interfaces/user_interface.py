"""Interface for presenting results to an operator.

Defines the contract used by the CLI to show resolved payloads, failures
and the effective configuration, allowing different UI implementations.
"""

import abc
from typing import Any, Mapping

from fetchgate.domain.models.common import ResourceKey
from fetchgate.domain.models.fetch import ResolveResult

class UserInterface(abc.ABC):
    """Abstract Base Class for user interaction."""

    @abc.abstractmethod
    def display_resolution(self, key: ResourceKey, result: ResolveResult, **kwargs: Any) -> None:
        """Displays the outcome of resolving one key.

        Args:
            key: The resolved key.
            result: Either a Resolution or a FetchFailure.
            **kwargs: Additional arguments for formatting (e.g. max preview length).
        """
        pass

    @abc.abstractmethod
    def display_settings(self, settings: Mapping[str, Any]) -> None:
        """Displays effective configuration values."""
        pass

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        pass

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        pass
