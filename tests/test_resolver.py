"""
Tests for the request flow: cache hits, model answers, external fallback,
recording, persistence failures and single-flight.
"""

import threading
import time
from unittest.mock import Mock

import pytest

from memo_resolver.core import config
from memo_resolver.core.errors import ConfigurationError, InputValidationError, PersistenceFailure
from memo_resolver.core.memo_store import MemoizationStore
from memo_resolver.core.resolver import Resolver, build_resolver


def wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


class TestResolveFlow:
    """Test the main resolution path."""

    def test_confident_category_answers_from_model(self, resolver, fake_search, greeting_responses):
        """A confident category answers without consulting external search."""
        result = resolver.resolve("Hello!")
        assert result.source == "model"
        assert result.category == "greeting"
        assert result.answer in greeting_responses
        assert result.confidence > 0.7
        assert fake_search.calls == []

    def test_model_answer_is_recorded(self, resolver):
        """Model answers are memoized under the lowercased query."""
        result = resolver.resolve("Hello!")
        assert resolver.memory.lookup("hello!") == result.answer

    def test_unconfident_query_uses_external_answer(self, resolver, fake_search):
        """Rejected queries fall through to the external provider."""
        result = resolver.resolve("What is Python?")
        assert result.source == "external"
        assert result.answer == "Python is a programming language."
        assert fake_search.calls == ["What is Python?"]
        assert resolver.memory.lookup("what is python?") == result.answer

    def test_ambiguous_query_is_rejected(self, resolver, fake_search):
        """Two tied categories stay below the threshold."""
        # hello and bye tie at ~0.5
        result = resolver.resolve("hello bye")
        assert result.source == "external"

    def test_cache_hit_skips_model_and_search(self, resolver, fake_search):
        """A memoized answer is returned without evaluating the network."""
        resolver.memory.record("Hello?", "Hi!")
        resolver.evaluator = Mock(wraps=resolver.evaluator)

        result = resolver.resolve("hello?")
        assert result.source == "memory"
        assert result.answer == "Hi!"
        resolver.evaluator.evaluate.assert_not_called()
        assert fake_search.calls == []

    def test_repeat_query_never_calls_search_again(self, resolver, fake_search):
        """A second ask differing only in case is served from memory."""
        first = resolver.resolve("What is Python?")
        second = resolver.resolve("WHAT IS PYTHON?")
        assert second.answer == first.answer
        assert second.source == "memory"
        assert len(fake_search.calls) == 1

    def test_cache_hit_does_not_record(self, resolver):
        """Cache hits leave the store untouched."""
        resolver.resolve("Hello!")
        resolver.memory.record = Mock(wraps=resolver.memory.record)
        resolver.resolve("hello!")
        resolver.memory.record.assert_not_called()

    def test_each_miss_records_exactly_once(self, resolver):
        """A miss writes one entry with the final answer."""
        resolver.memory.record = Mock(wraps=resolver.memory.record)
        resolver.resolve("What is Python?")
        resolver.memory.record.assert_called_once_with("What is Python?", "Python is a programming language.")


class TestFallbacks:
    """Test the fixed fallback answers."""

    def test_empty_external_answer_uses_not_found_message(self, resolver, fake_search):
        """No external answer gives the not-found message."""
        fake_search.answer = None
        result = resolver.resolve("What is Python?")
        assert result.source == "fallback"
        assert result.answer == config.NOT_FOUND_MESSAGE

    def test_external_failure_is_recovered(self, resolver, fake_search):
        """Provider errors are treated as no answer."""
        fake_search.error = ConnectionError("offline")
        result = resolver.resolve("What is Python?")
        assert result.answer == config.NOT_FOUND_MESSAGE

    def test_no_external_provider_uses_not_understood_message(self, weight_store, memory):
        """Without a provider the not-understood message is used."""
        result = Resolver(weight_store, memory).resolve("What is Python?")
        assert result.source == "fallback"
        assert result.answer == config.NOT_UNDERSTOOD_MESSAGE

    def test_fallback_answer_is_recorded(self, weight_store, memory):
        """Fallback answers are memoized like any other answer."""
        Resolver(weight_store, memory).resolve("What is Python?")
        assert memory.lookup("what is python?") == config.NOT_UNDERSTOOD_MESSAGE


class TestValidationAndFailures:
    """Test input validation and persistence errors."""

    @pytest.mark.parametrize("query", ["", "   ", "\n\t", None])
    def test_empty_query_rejected_without_side_effects(self, resolver, fake_search, query):
        """Blank queries raise before anything is counted or stored."""
        with pytest.raises(InputValidationError):
            resolver.resolve(query)
        assert len(resolver.memory) == 0
        assert fake_search.calls == []
        assert resolver.get_stats()["requests"] == 0

    def test_persistence_failure_carries_answer(self, weight_store, fake_search):
        """A failed write still exposes the computed answer."""
        backend = Mock()
        backend.load.return_value = []
        backend.save_entry.side_effect = PersistenceFailure("disk full")
        resolver = Resolver(weight_store, MemoizationStore(backend).init(), search_provider=fake_search)

        with pytest.raises(PersistenceFailure) as exc_info:
            resolver.resolve("What is Python?")
        assert exc_info.value.answer == "Python is a programming language."
        assert resolver.get_stats()["persistence_failures"] == 1


class TestSingleFlight:
    """Test collapsing of concurrent misses for the same query."""

    def test_concurrent_misses_share_one_resolution(self, resolver, fake_search):
        """Two concurrent misses make one search call and one write."""
        fake_search.release.clear()
        resolver.memory.record = Mock(wraps=resolver.memory.record)
        results = []

        def ask(query):
            results.append(resolver.resolve(query))

        leader = threading.Thread(target=ask, args=("What is Python?",))
        leader.start()
        assert fake_search.called.wait(5)

        follower = threading.Thread(target=ask, args=("what is python?",))
        follower.start()
        assert wait_for(lambda: resolver.get_stats()["shared_flights"] == 1)

        fake_search.release.set()
        leader.join(5)
        follower.join(5)

        assert len(results) == 2
        assert results[0].answer == results[1].answer
        assert len(fake_search.calls) == 1
        assert resolver.memory.record.call_count == 1
        assert resolver.get_stats()["inflight"] == 0

    def test_followers_receive_leader_error(self, weight_store, fake_search):
        """A waiting caller sees the same failure as the leader."""
        backend = Mock()
        backend.load.return_value = []
        backend.save_entry.side_effect = PersistenceFailure("disk full")
        resolver = Resolver(weight_store, MemoizationStore(backend).init(), search_provider=fake_search)
        fake_search.release.clear()
        errors = []

        def ask():
            try:
                resolver.resolve("What is Python?")
            except PersistenceFailure as e:
                errors.append(e)

        threads = [threading.Thread(target=ask) for _ in range(2)]
        threads[0].start()
        assert fake_search.called.wait(5)
        threads[1].start()
        assert wait_for(lambda: resolver.get_stats()["shared_flights"] == 1)
        fake_search.release.set()
        for thread in threads:
            thread.join(5)

        assert len(errors) == 2
        assert len(fake_search.calls) == 1

    def test_distinct_queries_do_not_block_each_other(self, resolver, fake_search):
        """A different query resolves while another is in flight."""
        fake_search.release.clear()
        blocked = threading.Thread(target=resolver.resolve, args=("What is Python?",))
        blocked.start()
        assert fake_search.called.wait(5)

        assert resolver.resolve("thanks").source == "model"

        fake_search.release.set()
        blocked.join(5)


class TestDeterminism:
    """Test that evaluation is pure."""

    def test_same_text_same_raw_output(self, resolver):
        """Identical text yields bit-identical raw output."""
        first = resolver.evaluator.evaluate(resolver.encoder.encode("hello thanks"))
        second = resolver.evaluator.evaluate(resolver.encoder.encode("hello thanks"))
        assert first.tobytes() == second.tobytes()


class TestBuildResolver:
    """Test wiring the resolver from configuration."""

    def test_invalid_configuration_refuses_to_build(self, monkeypatch):
        """Configuration issues raise ConfigurationError."""
        monkeypatch.setattr(config, "MEMORY_BACKEND", "redis")
        with pytest.raises(ConfigurationError, match="MEMORY_BACKEND"):
            build_resolver()

    def test_builds_from_configuration(self, monkeypatch, tmp_path):
        """A missing model file builds from the bundled default."""
        monkeypatch.setattr(config, "DB_PATH", str(tmp_path / "memory.db"))
        monkeypatch.setattr(config, "MODEL_DATA_PATH", str(tmp_path / "absent.json"))
        monkeypatch.setattr(config, "HIDDEN_LAYER_SIZES", "16,8")
        monkeypatch.setattr(config, "WEIGHT_SEED", "3")
        monkeypatch.setenv("EXTERNAL_SEARCH_ENABLED", "false")

        resolver = build_resolver()
        assert resolver.weights.network.shape == [100, 16, 8, 5]
        assert resolver.search_provider is None
        assert len(resolver.memory) == 0
