"""
Forward evaluator - runs the dense layers of a Network over an input vector.

Each evaluation is pure CPU work with no suspension points. With layers in
the thousands of units a single call costs roughly the sum of products of
adjacent layer sizes in multiply-accumulates, so callers serving concurrent
requests must run it on a worker thread rather than the event loop.
"""

import numpy as np

from ..core.errors import ConfigurationError
from .types import Layer, Network


def relu(x: np.ndarray) -> np.ndarray:
    return np.maximum(0.0, x)


def exp(x: np.ndarray) -> np.ndarray:
    return np.exp(x)


ACTIVATION_FUNCTIONS = {
    "relu": relu,
    "exp": exp,
}


def forward_layer(inputs: np.ndarray, layer: Layer) -> np.ndarray:
    """out[j] = act(sum_i inputs[i] * weights[i][j] + biases[j])"""
    return ACTIVATION_FUNCTIONS[layer.activation](inputs @ layer.weights + layer.biases)


class ForwardEvaluator:
    """Evaluates a fixed Network; holds no per-request state."""

    def __init__(self, network: Network):
        self.network = network

    def evaluate(self, input_vector: np.ndarray) -> np.ndarray:
        """Return the raw terminal-layer output (unnormalised, length = category count)."""
        vector = np.asarray(input_vector, dtype=np.float64)
        if vector.shape != (self.network.input_size,):
            raise ConfigurationError(
                f"Input vector of shape {vector.shape} does not match network input size {self.network.input_size}"
            )

        # overflow in exp yields inf, which the output policy handles
        with np.errstate(over="ignore"):
            for layer in self.network.layers:
                vector = forward_layer(vector, layer)
        return vector


def evaluate(network: Network, input_vector: np.ndarray) -> np.ndarray:
    return ForwardEvaluator(network).evaluate(input_vector)
