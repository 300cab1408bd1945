"""
Resolver - sequences memoization lookup, bag-of-words encoding, forward
evaluation, the confidence decision, external fallback and the memoization
write for each query.

RECEIVED -> CACHE_LOOKUP -> HIT -> RESPONDED
                         -> MISS -> ENCODE -> EVALUATE -> DECIDE
                                 -> ACCEPTED | REJECTED -> EXTERNAL_FALLBACK
                                 -> RECORD -> DONE

Concurrent misses for the same normalized query are collapsed: the first
caller resolves and records, the others wait for its result.
"""

import random
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..model.encoder import VectorEncoder
from ..model.evaluator import ForwardEvaluator
from ..model.output import DEFAULT_THRESHOLD, OutputResolver
from ..model.weights import WeightStore
from ..util.logging import logger
from . import config
from .errors import ConfigurationError, InputValidationError, PersistenceFailure
from .memo_store import MemoizationStore, normalize_query
from .search_service import SearchProvider, safe_search

SOURCE_MEMORY = "memory"
SOURCE_MODEL = "model"
SOURCE_EXTERNAL = "external"
SOURCE_FALLBACK = "fallback"


@dataclass(frozen=True)
class ResolvedAnswer:
    answer: str
    source: str
    category: Optional[str] = None
    confidence: Optional[float] = None


class _Flight:
    """One in-progress resolution that followers can wait on."""

    def __init__(self):
        self.done = threading.Event()
        self.result: Optional[ResolvedAnswer] = None
        self.error: Optional[BaseException] = None


class Resolver:
    """Hybrid inference-and-memoization resolver."""

    def __init__(self, weights: WeightStore, memory: MemoizationStore,
                 search_provider: Optional[SearchProvider] = None,
                 threshold: float = DEFAULT_THRESHOLD, rng: Optional[random.Random] = None):
        self.weights = weights
        self.memory = memory
        self.search_provider = search_provider
        self.encoder = VectorEncoder(weights.vocabulary)
        self.evaluator = ForwardEvaluator(weights.network)
        self.output = OutputResolver(weights.categories, threshold=threshold, rng=rng)

        self._inflight: Dict[str, _Flight] = {}
        self._flight_lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self._stats = {
            "requests": 0,
            "cache_hits": 0,
            "model_answers": 0,
            "external_answers": 0,
            "fallback_answers": 0,
            "shared_flights": 0,
            "persistence_failures": 0,
        }

    def _count(self, name: str):
        with self._stats_lock:
            self._stats[name] += 1

    def get_stats(self) -> Dict[str, Any]:
        with self._stats_lock:
            stats = dict(self._stats)
        stats["memory_entries"] = len(self.memory)
        stats["inflight"] = len(self._inflight)
        return stats

    def resolve(self, query: str) -> ResolvedAnswer:
        """Resolve a query to an answer.

        Raises InputValidationError for empty queries and PersistenceFailure
        (carrying the computed answer) when the memoization write fails.
        """
        if not isinstance(query, str) or not query.strip():
            raise InputValidationError("Query cannot be empty")

        self._count("requests")

        cached = self.memory.lookup(query)
        if cached is not None:
            self._count("cache_hits")
            return ResolvedAnswer(answer=cached, source=SOURCE_MEMORY)

        key = normalize_query(query)
        with self._flight_lock:
            flight = self._inflight.get(key)
            leader = flight is None
            if leader:
                flight = _Flight()
                self._inflight[key] = flight

        if not leader:
            self._count("shared_flights")
            flight.done.wait()
            if flight.error is not None:
                raise flight.error
            return flight.result

        try:
            flight.result = self._resolve_miss(query)
            return flight.result
        except BaseException as e:
            flight.error = e
            raise
        finally:
            with self._flight_lock:
                del self._inflight[key]
            flight.done.set()

    def _resolve_miss(self, query: str) -> ResolvedAnswer:
        # a previous flight may have recorded between the lookup and registration
        cached = self.memory.lookup(query)
        if cached is not None:
            self._count("cache_hits")
            return ResolvedAnswer(answer=cached, source=SOURCE_MEMORY)

        vector = self.encoder.encode(query)
        raw_output = self.evaluator.evaluate(vector)
        resolution = self.output.resolve(raw_output)
        logger.log_inference(
            resolution.probabilities,
            self.output.predicted_tag(resolution),
            resolution.confidence,
            resolution.accepted,
        )

        if resolution.accepted:
            result = ResolvedAnswer(
                answer=resolution.response,
                source=SOURCE_MODEL,
                category=resolution.category,
                confidence=resolution.confidence,
            )
            self._count("model_answers")
        else:
            external = safe_search(self.search_provider, query)
            if external is not None:
                result = ResolvedAnswer(answer=external, source=SOURCE_EXTERNAL, confidence=resolution.confidence)
                self._count("external_answers")
            else:
                message = config.NOT_FOUND_MESSAGE if self.search_provider else config.NOT_UNDERSTOOD_MESSAGE
                result = ResolvedAnswer(answer=message, source=SOURCE_FALLBACK, confidence=resolution.confidence)
                self._count("fallback_answers")

        try:
            self.memory.record(query, result.answer)
        except PersistenceFailure as e:
            self._count("persistence_failures")
            raise PersistenceFailure(str(e), answer=result.answer) from e

        return result


def build_resolver() -> Resolver:
    """Build the resolver from configuration. ConfigurationError propagates."""
    issues = config.validate_config()
    if issues:
        raise ConfigurationError(f"Invalid configuration: {issues}")

    weights = WeightStore.load(
        config.MODEL_DATA_PATH,
        hidden_sizes=config.get_hidden_layer_sizes(),
        seed=config.get_weight_seed(),
        init_range=config.WEIGHT_INIT_RANGE,
    )
    memory = MemoizationStore(config.get_memory_backend(), capacity=config.get_memory_capacity()).init()
    seed = config.get_weight_seed()
    return Resolver(
        weights,
        memory,
        search_provider=config.get_search_provider(),
        threshold=config.CONFIDENCE_THRESHOLD,
        rng=random.Random(seed) if seed is not None else None,
    )
