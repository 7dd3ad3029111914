"""Tests for cassette record and replay."""

import json
from pathlib import Path

import httpx
import pytest
import yaml

from edgekv.client import Client
from edgekv.config import ClientConfig
from edgekv.exceptions import CassetteError
from edgekv.fake import FakeKVService
from edgekv.models import CreateKVStoreInput, ListKVStoreKeysInput
from edgekv.recording import (
    Cassette,
    Interaction,
    RecordedRequest,
    RecordedResponse,
    RecordingTransport,
    ReplayTransport,
    record,
    recording_enabled,
)


def listing(cursor: str | None = None, data: list[str] | None = None) -> Interaction:
    """A recorded key listing page; the first page points at cursor c2."""
    query = {"cursor": cursor} if cursor else {}
    body = {"data": data or [], "meta": {"next_cursor": "" if cursor else "c2"}}
    return Interaction(
        request=RecordedRequest(method="GET", path="/resources/stores/kv/s1/keys", query=query),
        response=RecordedResponse(status=200, body=json.dumps(body)),
    )


class TestCassetteFile:
    """Tests for loading and saving cassettes."""

    def test_save_and_load(self, tmp_path: Path) -> None:
        """Saved interactions load back unchanged."""
        path = tmp_path / "nested" / "cassette.yaml"
        cassette = Cassette(path, [listing(data=["a"])])

        cassette.save()
        loaded = Cassette.load(path)

        assert loaded.interactions == cassette.interactions

    def test_load_missing(self, tmp_path: Path) -> None:
        """A missing cassette points at record mode."""
        with pytest.raises(CassetteError, match="EDGEKV_RECORD"):
            Cassette.load(tmp_path / "absent.yaml")

    def test_load_malformed(self, tmp_path: Path) -> None:
        """Entries without a response are rejected."""
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.safe_dump({"interactions": [{"request": {"method": "GET"}}]}))

        with pytest.raises(CassetteError, match="Malformed"):
            Cassette.load(path)

    def test_text_body_is_stored_as_text(self) -> None:
        """UTF-8 bodies stay readable in the cassette."""
        recorded = RecordedResponse.from_response(httpx.Response(200, text="héllo"))

        assert recorded.body == "héllo"
        assert recorded.encoding is None
        assert recorded.to_response().content == "héllo".encode()

    def test_binary_body_survives_save_and_load(self, tmp_path: Path) -> None:
        """Bytes that are not UTF-8 replay exactly as recorded."""
        raw = b"\xff\x00binary\x80"
        recorded = RecordedResponse.from_response(httpx.Response(200, content=raw))
        assert recorded.encoding == "base64"

        path = tmp_path / "binary.yaml"
        request = RecordedRequest(method="GET", path="/resources/stores/kv/s1/keys/blob")
        Cassette(path, [Interaction(request=request, response=recorded)]).save()
        loaded = Cassette.load(path).interactions[0].response

        assert loaded.to_response().content == raw

    def test_unknown_body_encoding(self) -> None:
        """An unrecognised body encoding is a cassette error."""
        recorded = RecordedResponse(status=200, body="x", encoding="rot13")

        with pytest.raises(CassetteError, match="rot13"):
            recorded.to_response()


class TestReplay:
    """Tests for replaying interactions."""

    def test_paginates_from_cassette(self, tmp_path: Path) -> None:
        """The paginator walks recorded pages without a network."""
        cassette = Cassette(
            tmp_path / "c.yaml",
            [listing(data=["a", "b"]), listing(cursor="c2", data=["c"])],
        )
        transport = ReplayTransport(cassette)

        with Client(ClientConfig(api_key="k"), transport=transport) as client:
            paginator = client.new_list_kv_store_keys_paginator(
                ListKVStoreKeysInput(store_id="s1")
            )
            pages = list(paginator.pages())

        assert pages == [["a", "b"], ["c"]]
        assert paginator.error() is None
        assert transport.unplayed == []

    def test_unmatched_request(self, tmp_path: Path) -> None:
        """A request with no recording raises CassetteError."""
        transport = ReplayTransport(Cassette(tmp_path / "c.yaml"))

        with Client(ClientConfig(api_key="k"), transport=transport) as client:
            with pytest.raises(CassetteError, match="No recorded interaction"):
                client.list_kv_stores()

    def test_unmatched_request_is_deferred_by_paginator(self, tmp_path: Path) -> None:
        """The paginator keeps cassette misses like any other failure."""
        transport = ReplayTransport(Cassette(tmp_path / "c.yaml"))

        with Client(ClientConfig(api_key="k"), transport=transport) as client:
            paginator = client.new_list_kv_store_keys_paginator(
                ListKVStoreKeysInput(store_id="s1")
            )
            assert paginator.advance() is False

        assert isinstance(paginator.error(), CassetteError)

    def test_each_interaction_plays_once(self, tmp_path: Path) -> None:
        """Repeating a request needs a second recording."""
        transport = ReplayTransport(Cassette(tmp_path / "c.yaml", [listing(data=["a"])]))

        with Client(ClientConfig(api_key="k"), transport=transport) as client:
            client.list_kv_store_keys(ListKVStoreKeysInput(store_id="s1"))
            with pytest.raises(CassetteError):
                client.list_kv_store_keys(ListKVStoreKeysInput(store_id="s1"))


class TestRecording:
    """Tests for recording interactions."""

    def test_records_exchanges(self, tmp_path: Path) -> None:
        """Each exchange is captured without the API key."""
        service = FakeKVService()
        cassette = Cassette(tmp_path / "rec.yaml")
        transport = RecordingTransport(cassette, transport=service.transport())

        with Client(ClientConfig(api_key="secret"), transport=transport) as client:
            store = client.create_kv_store(CreateKVStoreInput(name="recorded", location="EU"))

        assert len(cassette.interactions) == 1
        interaction = cassette.interactions[0]
        assert interaction.request.method == "POST"
        assert interaction.request.query == {"location": "EU"}
        assert interaction.response.status == 201
        assert store.store_id in interaction.response.body

        cassette.save()
        assert "secret" not in (tmp_path / "rec.yaml").read_text()

    def test_record_then_replay(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """A recording replays to the same results."""
        path = tmp_path / "roundtrip.yaml"
        service = FakeKVService()
        service.create_store("s", keys={"k1": b"1", "k2": b"2", "k3": b"3"})
        store_id = next(iter(service.stores))

        monkeypatch.setattr(httpx, "HTTPTransport", lambda: service.transport())
        with record(path, config=ClientConfig(api_key="secret"), recording=True) as client:
            recorded = list(
                client.new_list_kv_store_keys_paginator(
                    ListKVStoreKeysInput(store_id=store_id, limit=2)
                ).pages()
            )

        with record(path, recording=False) as client:
            replayed = list(
                client.new_list_kv_store_keys_paginator(
                    ListKVStoreKeysInput(store_id=store_id, limit=2)
                ).pages()
            )

        assert recorded == replayed == [["k1", "k2"], ["k3"]]


class TestRecordingEnabled:
    """Tests for the record-mode switch."""

    @pytest.mark.parametrize("value,expected", [("1", True), ("true", True), ("0", False), ("", False)])
    def test_env_switch(
        self, monkeypatch: pytest.MonkeyPatch, value: str, expected: bool
    ) -> None:
        """EDGEKV_RECORD turns record mode on."""
        monkeypatch.setenv("EDGEKV_RECORD", value)
        assert recording_enabled() is expected
