"""
Backend Registry.

Backends self-register on module import; create_backend picks one by the
configured provider key.
"""

from collections.abc import Callable
from typing import Any

from testmedic.healing.backends.base import HealingBackend
from testmedic.shared.domain.exceptions import ConfigurationError
from testmedic.shared.infrastructure.config import Settings


class BackendRegistry:
    """Registry-based factory for healing backends."""

    _factories: dict[str, Callable[..., HealingBackend]] = {}

    @classmethod
    def register(cls, name: str, factory: Callable[..., HealingBackend]) -> None:
        """Register a factory called as ``factory(settings, **kwargs)``."""
        cls._factories[name.lower()] = factory

    @classmethod
    def create(cls, name: str, settings: Settings, **kwargs: Any) -> HealingBackend:
        """
        Raises:
            ConfigurationError: If no backend is registered under name
        """
        key = name.lower()
        if key not in cls._factories:
            raise ConfigurationError(
                f"No healing backend registered for: {name}. Available: {cls.available()}",
                {"provider": name},
            )
        return cls._factories[key](settings, **kwargs)

    @classmethod
    def available(cls) -> list[str]:
        return sorted(cls._factories)

    @classmethod
    def is_registered(cls, name: str) -> bool:
        return name.lower() in cls._factories


def create_backend(settings: Settings, **kwargs: Any) -> HealingBackend:
    """Backend for ``settings.provider``."""
    # Importing the package registers the built-in backends
    import testmedic.healing.backends  # noqa: F401

    return BackendRegistry.create(settings.provider, settings, **kwargs)
