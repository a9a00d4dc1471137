"""Layer implementations."""

from .base import Layer, TrainableLayer
from .conv import Convolutional2d
from .dense import Dense
from .flatten import Flatten
from .input import Input
from .pooling import Pooling2d

__all__ = [
    "Layer",
    "TrainableLayer",
    "Input",
    "Flatten",
    "Pooling2d",
    "Dense",
    "Convolutional2d",
]
