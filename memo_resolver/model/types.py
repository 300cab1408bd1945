"""
Inference data model - layers, network, categories and resolution results.
Layers hold flat numpy matrices; connections are implicit in matrix indices.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from ..core.errors import ConfigurationError

ACTIVATIONS = ("relu", "exp")


@dataclass(frozen=True)
class Layer:
    """One dense layer: weights is (input_size x output_size), biases is (output_size,)."""

    weights: np.ndarray
    biases: np.ndarray
    activation: str

    def __post_init__(self):
        if self.activation not in ACTIVATIONS:
            raise ConfigurationError(f"Unknown activation '{self.activation}', expected one of {ACTIVATIONS}")
        if self.weights.ndim != 2:
            raise ConfigurationError(f"Layer weights must be a matrix, got shape {self.weights.shape}")
        if self.biases.ndim != 1 or self.biases.shape[0] != self.weights.shape[1]:
            raise ConfigurationError(
                f"Bias length {self.biases.shape} does not match weight columns {self.weights.shape[1]}"
            )
        # Read-only for the lifetime of the serving session
        self.weights.setflags(write=False)
        self.biases.setflags(write=False)

    @property
    def input_size(self) -> int:
        return self.weights.shape[0]

    @property
    def output_size(self) -> int:
        return self.weights.shape[1]


@dataclass(frozen=True)
class Category:
    """An intent: a tag plus its candidate responses."""

    tag: str
    responses: Tuple[str, ...]

    def __post_init__(self):
        if not self.tag:
            raise ConfigurationError("Category tag cannot be empty")
        if not self.responses:
            raise ConfigurationError(f"Category '{self.tag}' has no responses")


@dataclass(frozen=True)
class Network:
    """Ordered dense layers, validated for adjacent dimension consistency."""

    layers: Tuple[Layer, ...]

    def __post_init__(self):
        if not self.layers:
            raise ConfigurationError("Network must contain at least one layer")
        for index, (current, following) in enumerate(zip(self.layers, self.layers[1:])):
            if current.output_size != following.input_size:
                raise ConfigurationError(
                    f"Layer {index} output size {current.output_size} does not match "
                    f"layer {index + 1} input size {following.input_size}"
                )

    @property
    def input_size(self) -> int:
        return self.layers[0].input_size

    @property
    def output_size(self) -> int:
        return self.layers[-1].output_size

    @property
    def shape(self) -> List[int]:
        """Unit counts per level, input first: e.g. [100, 1500, 1500, 5]."""
        return [self.input_size] + [layer.output_size for layer in self.layers]

    @property
    def neuron_count(self) -> int:
        return sum(self.shape)


@dataclass
class Resolution:
    """Outcome of the output decision policy."""

    category: Optional[str]
    confidence: float
    probabilities: List[float] = field(default_factory=list)
    response: Optional[str] = None

    @property
    def accepted(self) -> bool:
        return self.category is not None
