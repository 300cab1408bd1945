"""
Weight store - vocabulary, categories and layer matrices for one serving session.

Model data is a JSON document. Two layouts are accepted:

* generic: {"vocabulary": [...], "intents": [...], "layers": [{"weights", "biases", "activation"}]}
* legacy:  {"vocabulary": [...], "tags": [...], "intents": [...],
            "weights_h1", "bias_h1", "weights_h2", "bias_h2", "weights_out", "bias_out"}

When no weights are present every layer is drawn once from a uniform
distribution on [-init_range, init_range] using a seedable numpy Generator.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from ..core.errors import ConfigurationError
from ..util.logging import logger
from .types import Category, Layer, Network

DEFAULT_MODEL_PATH = Path(__file__).parent / "default_model.json"
DEFAULT_HIDDEN_SIZES = (1500, 1500)
DEFAULT_INIT_RANGE = 0.5

LEGACY_KEYS = [
    ("weights_h1", "bias_h1"),
    ("weights_h2", "bias_h2"),
    ("weights_out", "bias_out"),
]


def initialize_layer(input_size: int, output_size: int, activation: str,
                     rng: np.random.Generator, init_range: float = DEFAULT_INIT_RANGE) -> Layer:
    """Draw one layer's weights and biases from U(-init_range, init_range)."""
    weights = rng.uniform(-init_range, init_range, size=(input_size, output_size))
    biases = rng.uniform(-init_range, init_range, size=output_size)
    return Layer(weights=weights, biases=biases, activation=activation)


def initialize_network(sizes: Sequence[int], seed: Optional[int] = None,
                       init_range: float = DEFAULT_INIT_RANGE) -> Network:
    """Build a randomly initialised network for unit counts like [100, 1500, 1500, 5].

    Hidden layers use relu, the terminal layer uses exp.
    """
    if len(sizes) < 2:
        raise ConfigurationError(f"Network needs at least input and output sizes, got {list(sizes)}")
    if any(size < 1 for size in sizes):
        raise ConfigurationError(f"Layer sizes must be positive, got {list(sizes)}")

    rng = np.random.default_rng(seed)
    last = len(sizes) - 2
    layers = [
        initialize_layer(sizes[i], sizes[i + 1], "exp" if i == last else "relu", rng, init_range)
        for i in range(len(sizes) - 1)
    ]
    return Network(layers=tuple(layers))


def _is_empty(value: Any) -> bool:
    return value is None or (hasattr(value, "__len__") and len(value) == 0)


def _as_layer(weights: Any, biases: Any, activation: str, name: str) -> Layer:
    try:
        weight_matrix = np.asarray(weights, dtype=np.float64)
        bias_vector = np.asarray(biases, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Layer '{name}' contains non-numeric or ragged data: {e}")
    return Layer(weights=weight_matrix, biases=bias_vector, activation=activation)


def _parse_vocabulary(data: Dict[str, Any]) -> List[str]:
    vocabulary = data.get("vocabulary") or []
    if not isinstance(vocabulary, list) or not all(isinstance(token, str) for token in vocabulary):
        raise ConfigurationError("Vocabulary must be a list of strings")
    if len(set(vocabulary)) != len(vocabulary):
        raise ConfigurationError("Vocabulary tokens must be unique")
    return vocabulary


def _parse_categories(data: Dict[str, Any]) -> List[Category]:
    intents = data.get("intents") or []
    if not isinstance(intents, list):
        raise ConfigurationError("Intents must be a list of objects")

    by_tag = {}
    for index, intent in enumerate(intents):
        if not isinstance(intent, dict):
            raise ConfigurationError(f"Intent {index} must be an object, got {intent!r}")
        tag = intent.get("tag")
        if not isinstance(tag, str):
            raise ConfigurationError(f"Intent {index} tag must be a string, got {tag!r}")
        if tag in by_tag:
            raise ConfigurationError(f"Duplicate intent tag '{tag}'")
        responses = intent.get("responses")
        if not isinstance(responses, list) or not all(isinstance(r, str) for r in responses):
            raise ConfigurationError(f"Intent '{tag}' responses must be a list of strings")
        by_tag[tag] = Category(tag=tag, responses=tuple(responses))

    tags = data.get("tags")
    if not tags:
        return list(by_tag.values())
    if not isinstance(tags, list) or not all(isinstance(tag, str) for tag in tags):
        raise ConfigurationError("Tags must be a list of strings")

    missing = [tag for tag in tags if tag not in by_tag]
    if missing:
        raise ConfigurationError(f"Tags without a matching intent: {missing}")
    if len(set(tags)) != len(tags):
        raise ConfigurationError(f"Duplicate tags: {tags}")
    return [by_tag[tag] for tag in tags]


def _parse_layers(data: Dict[str, Any]) -> Optional[List[Layer]]:
    """Return loaded layers, or None when the document carries no weights."""
    if "layers" in data:
        specs = data.get("layers") or []
        if not isinstance(specs, list):
            raise ConfigurationError("Model data 'layers' must be a list of objects")
        if not specs:
            return None
        last = len(specs) - 1
        layers = []
        for i, spec in enumerate(specs):
            if not isinstance(spec, dict):
                raise ConfigurationError(f"layers[{i}] must be an object with weights and biases")
            activation = spec.get("activation") or ("exp" if i == last else "relu")
            layers.append(_as_layer(spec.get("weights"), spec.get("biases"), activation, f"layers[{i}]"))
        return layers

    present = [not (_is_empty(data.get(w)) and _is_empty(data.get(b))) for w, b in LEGACY_KEYS]
    if not any(present):
        return None
    if not all(present):
        raise ConfigurationError("Legacy model data has some layers filled and others empty")
    return [
        _as_layer(data[w], data[b], "exp" if w == "weights_out" else "relu", w)
        for w, b in LEGACY_KEYS
    ]


class WeightStore:
    """Immutable container of vocabulary, categories and network."""

    def __init__(self, vocabulary: Sequence[str], categories: Sequence[Category], network: Network,
                 generated: bool = False):
        self.vocabulary = tuple(vocabulary)
        self.categories = tuple(categories)
        self.network = network
        self.generated = generated
        self._validate()

    def _validate(self):
        if not self.categories:
            raise ConfigurationError(
                f"Empty category set with network output size {self.network.output_size}"
            )
        if self.network.input_size != len(self.vocabulary):
            raise ConfigurationError(
                f"Network input size {self.network.input_size} does not match vocabulary size {len(self.vocabulary)}"
            )
        if self.network.output_size != len(self.categories):
            raise ConfigurationError(
                f"Network output size {self.network.output_size} does not match category count {len(self.categories)}"
            )
        if self.network.layers[-1].activation != "exp":
            raise ConfigurationError("Terminal layer must use the exp activation")

    @classmethod
    def from_dict(cls, data: Dict[str, Any], hidden_sizes: Sequence[int] = DEFAULT_HIDDEN_SIZES,
                  seed: Optional[int] = None, init_range: float = DEFAULT_INIT_RANGE) -> "WeightStore":
        if not isinstance(data, dict):
            raise ConfigurationError("Model data must be a JSON object")

        vocabulary = _parse_vocabulary(data)
        categories = _parse_categories(data)
        if not categories:
            raise ConfigurationError("Model data defines no categories")

        layers = _parse_layers(data)
        if layers is not None:
            return cls(vocabulary, categories, Network(layers=tuple(layers)))

        sizes = [len(vocabulary)] + list(hidden_sizes) + [len(categories)]
        logger.info(f"No weights in model data, initialising random network {sizes}")
        network = initialize_network(sizes, seed=seed, init_range=init_range)
        logger.log_operation("weights.initialized", "success", {
            "shape": network.shape,
            "neurons": network.neuron_count,
            "seed": seed,
        })
        return cls(vocabulary, categories, network, generated=True)

    @classmethod
    def load(cls, path: Optional[str] = None, **kwargs) -> "WeightStore":
        """Load model data from path, falling back to the bundled default model."""
        model_path = Path(path) if path else DEFAULT_MODEL_PATH
        if not model_path.exists():
            logger.warning(f"Model data not found at {model_path}, using bundled default model")
            model_path = DEFAULT_MODEL_PATH

        try:
            with open(model_path, "r", encoding="utf-8") as f:
                text = f.read()
        except OSError as e:
            raise ConfigurationError(f"Cannot read model data {model_path}: {e}")

        try:
            data = json.loads(text) if text.strip() else {}
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Model data {model_path} is not valid JSON: {e}")
        if not data:
            logger.warning(f"Model data {model_path} is empty, using bundled default model")
            with open(DEFAULT_MODEL_PATH, "r", encoding="utf-8") as f:
                data = json.load(f)

        store = cls.from_dict(data, **kwargs)
        logger.log_operation("weights.loaded", "success", {
            "path": str(model_path),
            "shape": store.network.shape,
            "generated": store.generated,
        })
        return store

    def to_dict(self) -> Dict[str, Any]:
        """Serialise to the generic layout, weights included."""
        return {
            "vocabulary": list(self.vocabulary),
            "intents": [
                {"tag": category.tag, "responses": list(category.responses)}
                for category in self.categories
            ],
            "layers": [
                {
                    "weights": layer.weights.tolist(),
                    "biases": layer.biases.tolist(),
                    "activation": layer.activation,
                }
                for layer in self.network.layers
            ],
        }

    def save(self, path: str):
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f)
