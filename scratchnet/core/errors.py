"""Exception types raised by the network engine."""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Unsupported layer, activation, initializer or optimizer configuration."""


class ShapeMismatchError(ValueError):
    """A tensor or parameter shape disagrees with the declared one."""


class InvalidInputError(ValueError):
    """Training or prediction inputs that cannot be processed."""


__all__ = ["ConfigurationError", "ShapeMismatchError", "InvalidInputError"]
