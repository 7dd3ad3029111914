"""Tests for request and response models."""

import pytest
from pydantic import ValidationError

from edgekv.models import (
    BatchModifyKVStoreKeyInput,
    Consistency,
    KVStore,
    ListKVStoreKeysInput,
    ListKVStoreKeysResponse,
    decode_batch,
    encode_batch,
)


class TestKVStore:
    """Tests for the store model."""

    def test_from_wire(self) -> None:
        """The wire id field maps to store_id."""
        store = KVStore.model_validate({
            "id": "abc123",
            "name": "sessions",
            "created_at": "2026-03-02T10:14:05Z",
        })

        assert store.store_id == "abc123"
        assert store.created_at is not None
        assert store.created_at.year == 2026
        assert store.updated_at is None

    def test_by_field_name(self) -> None:
        """store_id is accepted directly too."""
        assert KVStore(store_id="abc", name="n").store_id == "abc"


class TestListing:
    """Tests for listing models."""

    def test_page_without_meta(self) -> None:
        """A page without meta is a last page."""
        page = ListKVStoreKeysResponse.model_validate({"data": ["a"]})

        assert page.data == ["a"]
        assert not page.meta.next_cursor

    def test_null_cursor(self) -> None:
        """A null cursor is a last page."""
        page = ListKVStoreKeysResponse.model_validate(
            {"data": [], "meta": {"next_cursor": None, "limit": 100}}
        )

        assert page.meta.next_cursor is None
        assert page.meta.limit == 100

    def test_consistency_from_string(self) -> None:
        """Consistency accepts its wire value."""
        request = ListKVStoreKeysInput(store_id="s", consistency="eventual")
        assert request.consistency is Consistency.EVENTUAL

    def test_negative_limit_rejected(self) -> None:
        """Page size cannot be negative."""
        with pytest.raises(ValidationError):
            ListKVStoreKeysInput(store_id="s", limit=-1)


class TestBatchEncoding:
    """Tests for NDJSON batch bodies."""

    def test_encode(self) -> None:
        """Values are base64-encoded, one record per line."""
        body = encode_batch({"batch-1": "VALUE", "batch-2": b"VALUE"})

        assert body.splitlines() == [
            '{"key": "batch-1", "value": "VkFMVUU="}',
            '{"key": "batch-2", "value": "VkFMVUU="}',
        ]

    def test_decode_tolerates_whitespace(self) -> None:
        """Indented lines and blank lines are accepted."""
        body = '{"key":"batch-1","value":"VkFMVUU="}\n\n    {"key":"batch-2","value":"VkFMVUU="}\n'

        assert decode_batch(body) == {"batch-1": b"VALUE", "batch-2": b"VALUE"}

    @pytest.mark.parametrize(
        "body",
        ['{"key": "k"}', "not json", '{"key": "k", "value": "***"}', '["k", "v"]'],
    )
    def test_decode_rejects_bad_records(self, body: str) -> None:
        """Malformed records raise ValueError."""
        with pytest.raises(ValueError):
            decode_batch(body)

    def test_from_items(self) -> None:
        """from_items produces a ready batch input."""
        request = BatchModifyKVStoreKeyInput.from_items("s1", {"k": "v"})

        assert request.store_id == "s1"
        assert decode_batch(request.body) == {"k": b"v"}
