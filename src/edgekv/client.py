"""HTTP client for the KV store resource of the service API."""

from typing import Any, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel

from edgekv.config import ClientConfig
from edgekv.exceptions import (
    DecodeError,
    FieldError,
    NotFoundError,
    ServiceError,
    TransportError,
)
from edgekv.models import (
    BatchModifyKVStoreKeyInput,
    CreateKVStoreInput,
    DeleteKVStoreInput,
    DeleteKVStoreKeyInput,
    GetKVStoreInput,
    GetKVStoreKeyInput,
    InsertKVStoreKeyInput,
    KVStore,
    ListKVStoreKeysInput,
    ListKVStoreKeysResponse,
    ListKVStoresInput,
    ListKVStoresResponse,
)
from edgekv.observability import Timer, get_logger
from edgekv.pagination import ListKVStoreKeysPaginator

logger = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)

API_KEY_HEADER = "Fastly-Key"
STORES_PATH = "/resources/stores/kv"
NDJSON_CONTENT_TYPE = "application/x-ndjson"


def _segment(value: str) -> str:
    """Percent-encode a value as a single URL path segment."""
    return quote(value, safe="")


def _store_path(store_id: str) -> str:
    return f"{STORES_PATH}/{_segment(store_id)}"


def _key_path(store_id: str, key: str) -> str:
    return f"{_store_path(store_id)}/keys/{_segment(key)}"


def _require(**fields: str) -> None:
    """Raise FieldError for the first empty required field."""
    for name, value in fields.items():
        if not value:
            raise FieldError(name)


def _error_from_response(response: httpx.Response) -> ServiceError:
    """Build a ServiceError from a non-success response.

    The service reports errors either as {"msg", "detail"} or as
    {"errors": [{"title", "detail"}]}; anything else falls back to the raw
    body text.
    """
    message = response.reason_phrase or "Unknown error"
    detail: str | None = None

    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        errors = body.get("errors")
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            message = errors[0].get("title") or message
            detail = errors[0].get("detail")
        else:
            message = body.get("msg") or body.get("title") or message
            detail = body.get("detail")
    elif response.text:
        detail = response.text

    error_cls = NotFoundError if response.status_code == 404 else ServiceError
    return error_cls(response.status_code, message, detail)


class Client:
    """Synchronous client for KV stores and their keys.

    Each operation issues exactly one HTTP request. Failures raise
    EdgeKVError subclasses; the key paginator records them instead.

    Example:
        with Client(ClientConfig.from_env()) as client:
            store = client.create_kv_store(CreateKVStoreInput(name="sessions"))
            client.insert_kv_store_key(
                InsertKVStoreKeyInput(store_id=store.store_id, key="a", value="1")
            )
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Client settings; defaults to ClientConfig()
            transport: Optional httpx transport (replay, fake service, ...)
        """
        from edgekv import __version__

        self.config = config or ClientConfig()
        headers = {
            "Accept": "application/json",
            "User-Agent": self.config.user_agent or f"edgekv/{__version__}",
        }
        if self.config.api_key:
            headers[API_KEY_HEADER] = self.config.api_key

        self._http = httpx.Client(
            base_url=self.config.base_url,
            headers=headers,
            timeout=self.config.timeout_seconds,
            transport=transport,
        )

    def close(self) -> None:
        """Close the underlying connection pool."""
        self._http.close()

    def __enter__(self) -> "Client":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Send one request and raise on transport failure or non-2xx.

        Parameters that are None, "" or False are left out; 0 is sent.
        """
        if params:
            params = {
                k: ("true" if v is True else v)
                for k, v in params.items()
                if v is not None and v is not False and v != ""
            }

        context: dict[str, Any] = {"method": method, "path": path}
        timer = Timer()
        try:
            with timer:
                response = self._http.request(
                    method,
                    path,
                    params=params or None,
                    json=json,
                    content=content,
                    headers=headers,
                )
        except httpx.DecodingError as e:
            logger.warning(
                "Response undecodable", context=context, error=e, duration_ms=timer.duration_ms
            )
            raise DecodeError(f"{method} {path}: {e}") from e
        except httpx.HTTPError as e:
            logger.warning(
                "Request failed", context=context, error=e, duration_ms=timer.duration_ms
            )
            raise TransportError(f"{method} {path}: {e}") from e

        context["status"] = response.status_code
        if not response.is_success:
            error = _error_from_response(response)
            logger.warning("Request rejected", context=context, duration_ms=timer.duration_ms)
            raise error

        logger.debug(f"{method} {path}", context=context, duration_ms=timer.duration_ms)
        return response

    @staticmethod
    def _decode(response: httpx.Response, model: type[M]) -> M:
        try:
            return model.model_validate(response.json())
        except ValueError as e:
            raise DecodeError(
                f"Cannot decode {model.__name__} from {response.request.url.path}: {e}"
            ) from e

    # Stores

    def list_kv_stores(self, input: ListKVStoresInput | None = None) -> ListKVStoresResponse:
        """List one page of stores."""
        input = input or ListKVStoresInput()
        response = self._request(
            "GET",
            STORES_PATH,
            params={"cursor": input.cursor, "limit": input.limit or None},
        )
        return self._decode(response, ListKVStoresResponse)

    def create_kv_store(self, input: CreateKVStoreInput) -> KVStore:
        """Create a store, optionally pinned to a location (US, EU, ASIA, AUS)."""
        _require(name=input.name)
        response = self._request(
            "POST",
            STORES_PATH,
            params={"location": input.location},
            json={"name": input.name},
        )
        return self._decode(response, KVStore)

    def get_kv_store(self, input: GetKVStoreInput) -> KVStore:
        """Fetch a store's description."""
        _require(store_id=input.store_id)
        response = self._request("GET", _store_path(input.store_id))
        return self._decode(response, KVStore)

    def delete_kv_store(self, input: DeleteKVStoreInput) -> None:
        """Delete a store. The service refuses stores that still hold keys."""
        _require(store_id=input.store_id)
        self._request("DELETE", _store_path(input.store_id))

    # Keys

    def list_kv_store_keys(self, input: ListKVStoreKeysInput) -> ListKVStoreKeysResponse:
        """List one page of keys.

        Use new_list_kv_store_keys_paginator() to walk every page.
        """
        _require(store_id=input.store_id)
        consistency = input.consistency.value if input.consistency else None
        response = self._request(
            "GET",
            f"{_store_path(input.store_id)}/keys",
            params={
                "cursor": input.cursor,
                "limit": input.limit or None,  # 0 = service default
                "consistency": consistency,
                "prefix": input.prefix,
            },
        )
        return self._decode(response, ListKVStoreKeysResponse)

    def new_list_kv_store_keys_paginator(
        self, input: ListKVStoreKeysInput
    ) -> ListKVStoreKeysPaginator:
        """Create a paginator over every key of a store. No request is sent yet."""
        return ListKVStoreKeysPaginator(self, input)

    def get_kv_store_key(self, input: GetKVStoreKeyInput) -> str:
        """Fetch one key's value.

        Raises:
            NotFoundError: If the key does not exist
        """
        _require(store_id=input.store_id, key=input.key)
        response = self._request("GET", _key_path(input.store_id, input.key))
        return response.text

    def insert_kv_store_key(self, input: InsertKVStoreKeyInput) -> None:
        """Insert or update one key."""
        _require(store_id=input.store_id, key=input.key)

        headers: dict[str, str] = {}
        if input.if_generation_match is not None:
            headers["if-generation-match"] = str(input.if_generation_match)
        if input.metadata is not None:
            headers["metadata"] = input.metadata

        value = input.value.encode() if isinstance(input.value, str) else input.value
        self._request(
            "PUT",
            _key_path(input.store_id, input.key),
            params={
                "add": input.add,
                "append": input.append,
                "prepend": input.prepend,
                "background_fetch": input.background_fetch,
                "time_to_live_sec": input.time_to_live_sec,
            },
            content=value,
            headers=headers or None,
        )

    def delete_kv_store_key(self, input: DeleteKVStoreKeyInput) -> None:
        """Delete one key. With force, a missing key is not an error."""
        _require(store_id=input.store_id, key=input.key)
        self._request(
            "DELETE",
            _key_path(input.store_id, input.key),
            params={"force": input.force},
        )

    def batch_modify_kv_store_keys(self, input: BatchModifyKVStoreKeyInput) -> None:
        """Insert or update many keys from a newline-delimited JSON body."""
        _require(store_id=input.store_id)

        body = input.body
        if body is None:
            raise FieldError("body")
        if hasattr(body, "read"):
            body = body.read()
        if isinstance(body, str):
            body = body.encode()

        self._request(
            "PUT",
            f"{_store_path(input.store_id)}/batch",
            content=body,
            headers={"Content-Type": NDJSON_CONTENT_TYPE},
        )
