"""
Inference layer - bag-of-words encoding, dense forward evaluation and the
confidence-gated output policy.
"""

# Package initialization for model module
from .types import Layer, Network, Category, Resolution
from .encoder import VectorEncoder, encode, tokenize
from .evaluator import ForwardEvaluator, evaluate
from .output import OutputResolver, normalize, resolve
from .weights import WeightStore, initialize_network

__all__ = [
    'Layer',
    'Network',
    'Category',
    'Resolution',
    'VectorEncoder',
    'encode',
    'tokenize',
    'ForwardEvaluator',
    'evaluate',
    'OutputResolver',
    'normalize',
    'resolve',
    'WeightStore',
    'initialize_network',
]
