"""
Shared fixtures: a tiny hand-built network, temporary memory stores and a
fake external search provider.
"""

import random
import threading

import numpy as np
import pytest

from memo_resolver.core.memo_store import MemoizationStore
from memo_resolver.core.memory_backend import SQLiteMemoryBackend
from memo_resolver.core.resolver import Resolver
from memo_resolver.core.search_service import SearchProvider
from memo_resolver.model.types import Category, Layer, Network
from memo_resolver.model.weights import WeightStore

VOCABULARY = ["hello", "bye", "thanks"]

GREETING_RESPONSES = ("Hi!", "Hello!")


def make_categories():
    """Three single-purpose categories matching the vocabulary."""
    return [
        Category(tag="greeting", responses=GREETING_RESPONSES),
        Category(tag="goodbye", responses=("Bye!",)),
        Category(tag="thanks", responses=("You're welcome!",)),
    ]


def make_network():
    """relu identity hidden layer, then exp(10 * x): one known token dominates."""
    hidden = Layer(weights=np.eye(3), biases=np.zeros(3), activation="relu")
    output = Layer(weights=np.eye(3) * 10.0, biases=np.zeros(3), activation="exp")
    return Network(layers=(hidden, output))


class FakeSearch(SearchProvider):
    """Records calls; optionally blocks until released or raises."""

    def __init__(self, answer=None, error=None):
        self.answer = answer
        self.error = error
        self.calls = []
        self.called = threading.Event()
        self.release = threading.Event()
        self.release.set()

    def search(self, query):
        self.calls.append(query)
        self.called.set()
        self.release.wait(5)
        if self.error is not None:
            raise self.error
        return self.answer


@pytest.fixture
def weight_store():
    """Weight store over the hand-built network."""
    return WeightStore(VOCABULARY, make_categories(), make_network())


@pytest.fixture
def db_path(tmp_path):
    """Temporary SQLite database path."""
    return str(tmp_path / "memory.db")


@pytest.fixture
def memory(db_path):
    """Empty SQLite-backed memoization store."""
    return MemoizationStore(SQLiteMemoryBackend(db_path)).init()


@pytest.fixture
def greeting_responses():
    """Responses of the greeting category."""
    return GREETING_RESPONSES


@pytest.fixture
def fake_search():
    """Search provider that always knows about Python."""
    return FakeSearch(answer="Python is a programming language.")


@pytest.fixture
def resolver(weight_store, memory, fake_search):
    """Resolver with a seeded response choice."""
    return Resolver(weight_store, memory, search_provider=fake_search, rng=random.Random(7))
