"""Request inputs and response bodies for the KV store resource."""

import base64
import json
from collections.abc import Mapping
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Consistency(str, Enum):
    """Read consistency requested from the service for a key listing."""

    EVENTUAL = "eventual"
    STRONG = "strong"


class KVStore(BaseModel):
    """A named key-value collection hosted by the service."""

    model_config = ConfigDict(populate_by_name=True)

    store_id: str = Field(alias="id")
    name: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ListMeta(BaseModel):
    """Pagination metadata returned with a listing page."""

    next_cursor: str | None = None  # None or "" on the last page
    limit: int | None = None


class ListKVStoresResponse(BaseModel):
    """One page of stores."""

    data: list[KVStore] = Field(default_factory=list)
    meta: ListMeta = Field(default_factory=ListMeta)


class ListKVStoreKeysResponse(BaseModel):
    """One page of key names, in service-defined order."""

    data: list[str] = Field(default_factory=list)
    meta: ListMeta = Field(default_factory=ListMeta)


class ListKVStoresInput(BaseModel):
    """Parameters for listing stores."""

    cursor: str = ""
    limit: int = Field(default=0, ge=0)  # 0 = service default


class CreateKVStoreInput(BaseModel):
    """Parameters for creating a store."""

    name: str = ""
    location: str = ""  # US, EU, ASIA, AUS


class GetKVStoreInput(BaseModel):
    """Parameters for fetching a store."""

    store_id: str = ""


class DeleteKVStoreInput(BaseModel):
    """Parameters for deleting a store."""

    store_id: str = ""


class ListKVStoreKeysInput(BaseModel):
    """Parameters for listing the keys of a store."""

    store_id: str = ""
    consistency: Consistency | None = None
    limit: int = Field(default=0, ge=0)  # 0 = service default
    cursor: str = ""
    prefix: str = ""


class GetKVStoreKeyInput(BaseModel):
    """Parameters for fetching one key's value."""

    store_id: str = ""
    key: str = ""


class InsertKVStoreKeyInput(BaseModel):
    """Parameters for inserting or updating one key."""

    store_id: str = ""
    key: str = ""
    value: str | bytes = ""
    add: bool = False
    append: bool = False
    prepend: bool = False
    background_fetch: bool = False
    if_generation_match: int | None = None
    metadata: str | None = None
    time_to_live_sec: int | None = Field(default=None, ge=0)


class DeleteKVStoreKeyInput(BaseModel):
    """Parameters for deleting one key."""

    store_id: str = ""
    key: str = ""
    force: bool = False


class BatchModifyKVStoreKeyInput(BaseModel):
    """Parameters for a bulk insert/update.

    ``body`` is newline-delimited JSON, one ``{"key": ..., "value": ...}``
    record per line with the value base64-encoded. It may be given as
    ``str``, ``bytes`` or a readable file-like object.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    store_id: str = ""
    body: Any = None

    @classmethod
    def from_items(
        cls,
        store_id: str,
        items: Mapping[str, str | bytes],
    ) -> "BatchModifyKVStoreKeyInput":
        """Build a batch body from a mapping of key to raw value."""
        return cls(store_id=store_id, body=encode_batch(items))


def encode_batch(items: Mapping[str, str | bytes]) -> str:
    """Encode key/value pairs as a newline-delimited JSON batch body."""
    lines = []
    for key, value in items.items():
        raw = value.encode() if isinstance(value, str) else value
        lines.append(json.dumps({"key": key, "value": base64.b64encode(raw).decode("ascii")}))
    return "\n".join(lines)


def decode_batch(body: str | bytes) -> dict[str, bytes]:
    """Decode a batch body into key to raw value.

    Blank lines and surrounding whitespace are ignored.

    Raises:
        ValueError: If a line is not a {key, value} record
    """
    if isinstance(body, bytes):
        body = body.decode()

    items: dict[str, bytes] = {}
    for line in body.splitlines():
        line = line.strip()
        if not line:
            continue
        record = json.loads(line)
        if not isinstance(record, dict) or "key" not in record or "value" not in record:
            raise ValueError(f"Invalid batch record: {line}")
        items[record["key"]] = base64.b64decode(record["value"], validate=True)
    return items
