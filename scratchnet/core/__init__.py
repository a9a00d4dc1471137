"""Core numerical primitives for scratchnet."""

from . import activations, errors, initializers, types

__all__ = ["activations", "errors", "initializers", "types"]
