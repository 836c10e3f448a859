"""Tests for the context retriever."""

from unittest.mock import Mock

import pytest

from sift.common.embedding_service import cosine_distances
from sift.retriever.context import ContextRetriever

USER = "user-1"


@pytest.fixture
def populated(store):
    ids = {}
    for name, text, vector in [
        ("exact", "Swim class every Tuesday", [1.0, 0.0]),
        ("close", "Swim gala next month", [0.9, 0.1]),
        ("far", "Dentist appointment", [0.0, 1.0]),
        ("wrong_dim", "Old model vector", [1.0, 0.0, 0.0]),
    ]:
        dump = store.create_dump(USER, content_text=text)
        store.set_dump_embedding(dump.id, vector)
        ids[name] = dump.id

    other = store.create_dump("user-2", content_text="Someone else's swim class")
    store.set_dump_embedding(other.id, [1.0, 0.0])
    ids["other_user"] = other.id
    return ids


class TestFindSimilar:
    def test_closest_first(self, store, populated):
        retriever = ContextRetriever(store)

        results = retriever.find_similar([1.0, 0.0], 3, user_id=USER)

        assert [r.dump_id for r in results] == [populated["exact"], populated["close"], populated["far"]]
        assert results[0].similarity == pytest.approx(1.0)
        assert results[0].text == "Swim class every Tuesday"

    def test_limit(self, store, populated):
        results = ContextRetriever(store).find_similar([1.0, 0.0], 1, user_id=USER)
        assert len(results) == 1

    def test_excludes_current_dump(self, store, populated):
        results = ContextRetriever(store).find_similar(
            [1.0, 0.0], 3, user_id=USER, exclude_dump_id=populated["exact"]
        )
        assert populated["exact"] not in [r.dump_id for r in results]

    def test_scoped_to_user(self, store, populated):
        results = ContextRetriever(store).find_similar([1.0, 0.0], 10, user_id=USER)
        assert populated["other_user"] not in [r.dump_id for r in results]

    def test_skips_mismatched_dimensions(self, store, populated):
        results = ContextRetriever(store).find_similar([1.0, 0.0], 10, user_id=USER)
        assert populated["wrong_dim"] not in [r.dump_id for r in results]

    def test_empty_embedding_returns_nothing(self, store, populated):
        assert ContextRetriever(store).find_similar([], 3, user_id=USER) == []

    def test_store_failure_returns_nothing(self):
        broken = Mock()
        broken.list_embedded_dumps.side_effect = RuntimeError("db locked")

        assert ContextRetriever(broken).find_similar([1.0, 0.0], 3, user_id=USER) == []

    def test_dumps_without_text_are_ignored(self, store):
        dump = store.create_dump(USER, media_url="notice.jpg")
        store.set_dump_embedding(dump.id, [1.0, 0.0])

        assert ContextRetriever(store).find_similar([1.0, 0.0], 3, user_id=USER) == []


class TestCosineDistances:
    def test_values(self):
        distances = cosine_distances([1.0, 0.0], [[1.0, 0.0], [0.0, 1.0], [-1.0, 0.0]])
        assert distances == pytest.approx([0.0, 1.0, 2.0])

    def test_zero_vector_is_distance_one(self):
        assert cosine_distances([1.0, 0.0], [[0.0, 0.0]]) == pytest.approx([1.0])

    def test_empty(self):
        assert cosine_distances([1.0], []) == []
