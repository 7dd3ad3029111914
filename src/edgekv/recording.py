"""Record and replay HTTP interactions for deterministic tests.

A cassette is a YAML file holding the request/response pairs of one
scenario. In replay mode (the default) requests are answered from the
cassette and nothing touches the network. In record mode requests go to the
real service and the exchanges are written back to the cassette; the API key
header is never recorded.

Set EDGEKV_RECORD=1 to record, together with the EDGEKV_* client settings.

Example:
    with record("tests/fixtures/kv_store/get-store.yaml") as client:
        store = client.get_kv_store(GetKVStoreInput(store_id=store_id))
"""

import base64
import os
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import httpx
import yaml

from edgekv.client import Client
from edgekv.config import ClientConfig
from edgekv.exceptions import CassetteError
from edgekv.observability import get_logger

logger = get_logger(__name__)

ENV_RECORD = "EDGEKV_RECORD"
RECORDED_HEADERS = ("content-type", "generation", "metadata")


def _request_path(request: httpx.Request) -> str:
    return request.url.raw_path.decode("ascii").partition("?")[0]


@dataclass
class RecordedRequest:
    """The parts of a request used for matching."""

    method: str
    path: str
    query: dict[str, str] = field(default_factory=dict)
    body: str | None = None

    @classmethod
    def from_request(cls, request: httpx.Request) -> "RecordedRequest":
        body = request.content.decode("utf-8", errors="replace") if request.content else None
        return cls(
            method=request.method,
            path=_request_path(request),
            query=dict(request.url.params),
            body=body,
        )

    def matches(self, request: httpx.Request) -> bool:
        """Match on method, path and query; bodies are not compared."""
        return (
            self.method == request.method
            and self.path == _request_path(request)
            and {k: str(v) for k, v in self.query.items()} == dict(request.url.params)
        )


@dataclass
class RecordedResponse:
    """A response as stored in a cassette.

    Bodies that are not valid UTF-8 are stored base64-encoded with
    ``encoding: base64``.
    """

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: str = ""
    encoding: str | None = None

    @classmethod
    def from_response(cls, response: httpx.Response) -> "RecordedResponse":
        headers = {
            name: response.headers[name]
            for name in RECORDED_HEADERS
            if name in response.headers
        }
        try:
            body = response.content.decode("utf-8")
        except UnicodeDecodeError:
            return cls(
                status=response.status_code,
                headers=headers,
                body=base64.b64encode(response.content).decode("ascii"),
                encoding="base64",
            )
        return cls(status=response.status_code, headers=headers, body=body)

    def to_response(self) -> httpx.Response:
        if self.encoding == "base64":
            content = base64.b64decode(self.body)
        elif self.encoding is None:
            content = self.body.encode("utf-8")
        else:
            raise CassetteError(f"Unknown body encoding: {self.encoding}")
        return httpx.Response(self.status, headers=self.headers, content=content)


@dataclass
class Interaction:
    """One request/response exchange."""

    request: RecordedRequest
    response: RecordedResponse


class Cassette:
    """Ordered interactions loaded from, and saved to, a YAML file."""

    def __init__(self, path: str | Path, interactions: list[Interaction] | None = None) -> None:
        self.path = Path(path)
        self.interactions: list[Interaction] = interactions or []

    @classmethod
    def load(cls, path: str | Path) -> "Cassette":
        """Load a cassette file.

        Raises:
            CassetteError: If the file is missing or malformed
        """
        path = Path(path)
        if not path.exists():
            raise CassetteError(f"Cassette not found: {path} (set {ENV_RECORD}=1 to record it)")

        with path.open() as f:
            data = yaml.safe_load(f) or {}

        try:
            interactions = [
                Interaction(
                    request=RecordedRequest(**item["request"]),
                    response=RecordedResponse(**item["response"]),
                )
                for item in data.get("interactions", [])
            ]
        except (KeyError, TypeError) as e:
            raise CassetteError(f"Malformed cassette {path}: {e}") from e
        return cls(path, interactions)

    def save(self) -> None:
        """Write the cassette, creating parent directories as needed."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data: dict[str, Any] = {"interactions": [asdict(i) for i in self.interactions]}
        with self.path.open("w") as f:
            yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)


class ReplayTransport(httpx.BaseTransport):
    """Answers requests from a cassette.

    Each interaction is played at most once; a request is served by the
    first unplayed interaction that matches it.
    """

    def __init__(self, cassette: Cassette) -> None:
        self.cassette = cassette
        self._played: set[int] = set()

    @property
    def unplayed(self) -> list[Interaction]:
        """Interactions not yet used."""
        return [
            interaction
            for i, interaction in enumerate(self.cassette.interactions)
            if i not in self._played
        ]

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        for i, interaction in enumerate(self.cassette.interactions):
            if i in self._played or not interaction.request.matches(request):
                continue
            self._played.add(i)
            return interaction.response.to_response()

        raise CassetteError(
            f"No recorded interaction for {request.method} {request.url} "
            f"in {self.cassette.path}"
        )


class RecordingTransport(httpx.BaseTransport):
    """Forwards requests to a real transport and records each exchange."""

    def __init__(self, cassette: Cassette, transport: httpx.BaseTransport | None = None) -> None:
        self.cassette = cassette
        self._transport = transport or httpx.HTTPTransport()

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        response = self._transport.handle_request(request)
        response.read()
        self.cassette.interactions.append(
            Interaction(
                request=RecordedRequest.from_request(request),
                response=RecordedResponse.from_response(response),
            )
        )
        return response

    def close(self) -> None:
        self._transport.close()


def recording_enabled() -> bool:
    """Whether EDGEKV_RECORD asks for record mode."""
    return os.environ.get(ENV_RECORD, "").lower() in ("1", "true", "yes")


@contextmanager
def record(
    cassette_path: str | Path,
    config: ClientConfig | None = None,
    recording: bool | None = None,
) -> Iterator[Client]:
    """Yield a client bound to a cassette.

    Args:
        cassette_path: YAML cassette location
        config: Client settings for record mode; defaults to ClientConfig.from_env()
        recording: Force record (True) or replay (False); defaults to EDGEKV_RECORD
    """
    if recording is None:
        recording = recording_enabled()

    transport: httpx.BaseTransport
    if recording:
        cassette = Cassette(cassette_path)
        transport = RecordingTransport(cassette)
        config = config or ClientConfig.from_env()
    else:
        cassette = Cassette.load(cassette_path)
        transport = ReplayTransport(cassette)
        config = config or ClientConfig(api_key="replay")

    client = Client(config, transport=transport)
    try:
        yield client
    finally:
        client.close()
        if recording:
            cassette.save()
            logger.info(
                "Cassette recorded",
                context={"path": str(cassette.path), "interactions": len(cassette.interactions)},
            )
