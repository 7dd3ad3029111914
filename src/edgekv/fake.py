"""In-memory stand-in for the KV store service.

Speaks the same HTTP contract as the real service and plugs into the client
as an httpx transport. Suitable for development and testing; data is lost
when the object goes away.

Example:
    service = FakeKVService()
    client = Client(ClientConfig(api_key="test"), transport=service.transport())
"""

import base64
import json
import re
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from urllib.parse import parse_qs, unquote

import httpx

from edgekv.models import Consistency, decode_batch

LOCATIONS = ("US", "EU", "ASIA", "AUS")
DEFAULT_KEYS_LIMIT = 100
MAX_KEYS_LIMIT = 1000
DEFAULT_STORES_LIMIT = 1000

_STORE_ROUTE = re.compile(r"^/resources/stores/kv(?:/(?P<store>[^/]+)(?:/(?P<rest>.*))?)?$")


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _encode_cursor(offset: int) -> str:
    return base64.urlsafe_b64encode(f"offset:{offset}".encode()).decode("ascii")


def _decode_cursor(cursor: str) -> int:
    """Decode a cursor produced by _encode_cursor.

    Raises:
        ValueError: If the cursor was not issued by this service
    """
    raw = base64.urlsafe_b64decode(cursor.encode("ascii")).decode()
    prefix, _, offset = raw.partition(":")
    if prefix != "offset":
        raise ValueError(cursor)
    return int(offset)


def _error(status_code: int, msg: str, detail: str | None = None) -> httpx.Response:
    body: dict[str, Any] = {"msg": msg}
    if detail:
        body["detail"] = detail
    return httpx.Response(status_code, json=body)


@dataclass
class FakeEntry:
    """A stored value with its generation and metadata."""

    value: bytes
    generation: int = 1
    metadata: str | None = None


@dataclass
class FakeStore:
    """A store held by the fake service. Keys keep insertion order."""

    store_id: str
    name: str
    location: str | None = None
    created_at: str = field(default_factory=_now)
    updated_at: str = field(default_factory=_now)
    entries: dict[str, FakeEntry] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.store_id,
            "name": self.name,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


class FakeKVService:
    """In-memory KV store service behind an httpx.MockTransport."""

    def __init__(self, api_key: str | None = None) -> None:
        """Initialize the fake service.

        Args:
            api_key: If set, requests without this Fastly-Key are rejected
        """
        self.api_key = api_key
        self.stores: dict[str, FakeStore] = {}
        self.requests: list[httpx.Request] = []
        self._injected: list[httpx.Response | Exception] = []

    def transport(self) -> httpx.MockTransport:
        """Transport to hand to Client(transport=...)."""
        return httpx.MockTransport(self.handle)

    def inject(self, outcome: httpx.Response | Exception) -> None:
        """Queue a canned response or exception for the next request."""
        self._injected.append(outcome)

    def create_store(self, name: str, keys: dict[str, bytes] | None = None) -> FakeStore:
        """Seed a store directly, without going through HTTP."""
        store = FakeStore(store_id=secrets.token_hex(11), name=name)
        for key, value in (keys or {}).items():
            store.entries[key] = FakeEntry(value=value)
        self.stores[store.store_id] = store
        return store

    def handle(self, request: httpx.Request) -> httpx.Response:
        """Route one request."""
        self.requests.append(request)

        if self._injected:
            outcome = self._injected.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        if self.api_key is not None and request.headers.get("Fastly-Key") != self.api_key:
            return _error(401, "Unauthorized", "Provided credentials are missing or invalid")

        raw_path = request.url.raw_path.decode("ascii").partition("?")[0]
        match = _STORE_ROUTE.match(raw_path)
        if match is None:
            return _error(404, "Not Found", raw_path)

        params = {k: v[-1] for k, v in parse_qs(request.url.query.decode("ascii")).items()}
        store_id = unquote(match.group("store")) if match.group("store") else None
        rest = match.group("rest")
        method = request.method

        if store_id is None:
            if method == "GET":
                return self._list_stores(params)
            if method == "POST":
                return self._create_store(request, params)
            return _error(405, "Method Not Allowed")

        store = self.stores.get(store_id)
        if store is None:
            return _error(404, "Not Found", f"Store {store_id} not found")

        if rest is None:
            if method == "GET":
                return httpx.Response(200, json=store.to_dict())
            if method == "DELETE":
                return self._delete_store(store)
        elif rest == "keys" and method == "GET":
            return self._list_keys(store, params)
        elif rest == "batch" and method == "PUT":
            return self._batch(store, request)
        elif rest.startswith("keys/"):
            key = unquote(rest[len("keys/"):])
            if method == "GET":
                return self._get_key(store, key)
            if method == "PUT":
                return self._insert_key(store, key, request, params)
            if method == "DELETE":
                return self._delete_key(store, key, params)

        return _error(405, "Method Not Allowed")

    # Stores

    def _list_stores(self, params: dict[str, str]) -> httpx.Response:
        try:
            offset = _decode_cursor(params["cursor"]) if params.get("cursor") else 0
            limit = int(params.get("limit") or DEFAULT_STORES_LIMIT)
        except ValueError:
            return _error(400, "Bad Request", "Invalid cursor or limit")

        stores = list(self.stores.values())
        page = stores[offset:offset + limit]
        end = offset + len(page)
        next_cursor = _encode_cursor(end) if end < len(stores) else None
        return httpx.Response(
            200,
            json={
                "data": [s.to_dict() for s in page],
                "meta": {"next_cursor": next_cursor, "limit": limit},
            },
        )

    def _create_store(self, request: httpx.Request, params: dict[str, str]) -> httpx.Response:
        location = params.get("location")
        if location is not None and location not in LOCATIONS:
            return _error(400, "Bad Request", f"Invalid location {location}")
        try:
            name = json.loads(request.content)["name"]
        except (ValueError, KeyError, TypeError):
            return _error(400, "Bad Request", "Missing store name")
        if any(s.name == name for s in self.stores.values()):
            return _error(409, "Conflict", f"Store {name} already exists")

        store = self.create_store(name)
        store.location = location
        return httpx.Response(201, json=store.to_dict())

    def _delete_store(self, store: FakeStore) -> httpx.Response:
        if store.entries:
            return _error(409, "Conflict", "Store is not empty")
        del self.stores[store.store_id]
        return httpx.Response(204)

    # Keys

    def _list_keys(self, store: FakeStore, params: dict[str, str]) -> httpx.Response:
        consistency = params.get("consistency")
        if consistency is not None and consistency not in {c.value for c in Consistency}:
            return _error(400, "Bad Request", f"Invalid consistency {consistency}")
        try:
            offset = _decode_cursor(params["cursor"]) if params.get("cursor") else 0
            limit = int(params.get("limit") or DEFAULT_KEYS_LIMIT)
        except ValueError:
            return _error(400, "Bad Request", "Invalid cursor or limit")
        if not 0 < limit <= MAX_KEYS_LIMIT:
            return _error(400, "Bad Request", f"limit must be between 1 and {MAX_KEYS_LIMIT}")

        prefix = params.get("prefix", "")
        keys = [k for k in store.entries if k.startswith(prefix)]
        page = keys[offset:offset + limit]
        end = offset + len(page)
        next_cursor = _encode_cursor(end) if end < len(keys) else None
        return httpx.Response(
            200,
            json={"data": page, "meta": {"next_cursor": next_cursor, "limit": limit}},
        )

    def _get_key(self, store: FakeStore, key: str) -> httpx.Response:
        entry = store.entries.get(key)
        if entry is None:
            return _error(404, "Not Found", f"Key {key} not found")
        headers = {"generation": str(entry.generation)}
        if entry.metadata is not None:
            headers["metadata"] = entry.metadata
        return httpx.Response(200, content=entry.value, headers=headers)

    def _insert_key(
        self,
        store: FakeStore,
        key: str,
        request: httpx.Request,
        params: dict[str, str],
    ) -> httpx.Response:
        existing = store.entries.get(key)
        if params.get("add") == "true" and existing is not None:
            return _error(412, "Precondition Failed", f"Key {key} already exists")

        if_generation_match = request.headers.get("if-generation-match")
        if if_generation_match is not None:
            current = existing.generation if existing else 0
            if str(current) != if_generation_match:
                return _error(412, "Precondition Failed", "Generation mismatch")

        value = request.content
        if existing is not None:
            if params.get("append") == "true":
                value = existing.value + value
            elif params.get("prepend") == "true":
                value = value + existing.value

        store.entries[key] = FakeEntry(
            value=value,
            generation=existing.generation + 1 if existing else 1,
            metadata=request.headers.get("metadata"),
        )
        store.updated_at = _now()
        return httpx.Response(200)

    def _delete_key(self, store: FakeStore, key: str, params: dict[str, str]) -> httpx.Response:
        if key not in store.entries:
            if params.get("force") == "true":
                return httpx.Response(204)
            return _error(404, "Not Found", f"Key {key} not found")
        del store.entries[key]
        store.updated_at = _now()
        return httpx.Response(204)

    def _batch(self, store: FakeStore, request: httpx.Request) -> httpx.Response:
        if not request.headers.get("content-type", "").startswith("application/x-ndjson"):
            return _error(415, "Unsupported Media Type")
        try:
            items = decode_batch(request.content)
        except ValueError as e:
            return _error(400, "Bad Request", str(e))

        for key, value in items.items():
            existing = store.entries.get(key)
            store.entries[key] = FakeEntry(
                value=value,
                generation=existing.generation + 1 if existing else 1,
            )
        store.updated_at = _now()
        return httpx.Response(200)
