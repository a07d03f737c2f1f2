"""State store Dapr falso servido por httpx.MockTransport."""

import json
from urllib.parse import unquote

import httpx

from dapr_domain_cache.backend import DaprStateBackend


class FakeDaprStateStore:
    """Imita a API HTTP de estado do sidecar para um único store."""

    def __init__(self, store_name: str = "cache") -> None:
        self.store_name = store_name
        self.data: dict[str, object] = {}
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        prefix = f"/v1.0/state/{self.store_name}"
        path = request.url.raw_path.decode("ascii").split("?", 1)[0]
        if not path.startswith(prefix):
            return httpx.Response(400)

        key = unquote(path[len(prefix) + 1 :]) if len(path) > len(prefix) else None

        if request.method == "GET":
            if key not in self.data:
                return httpx.Response(204)
            return httpx.Response(200, content=json.dumps(self.data[key]).encode("utf-8"))

        if request.method == "POST":
            for item in json.loads(request.content):
                self.data[unquote(item["key"])] = item["value"]
            return httpx.Response(204)

        if request.method == "DELETE":
            self.data.pop(key, None)
            return httpx.Response(204)

        return httpx.Response(405)

    def backend(self, base_url: str = "http://dapr.test") -> DaprStateBackend:
        """Backend com clientes sync e async ligados a este store."""
        backend = DaprStateBackend(self.store_name, dapr_url=base_url)
        transport = httpx.MockTransport(self.handler)
        backend._sync_client = httpx.Client(base_url=base_url, transport=transport)
        backend._async_client = httpx.AsyncClient(base_url=base_url, transport=transport)
        return backend
