import httpx
import pytest


class DummyMCP:
    """Minimal FastMCP stand-in to capture tool registration."""

    def __init__(self) -> None:
        self.tools = {}

    def tool(self, *, name: str):
        def _decorator(fn):
            self.tools[name] = fn
            return fn
        return _decorator


@pytest.fixture
def dummy_mcp():
    return DummyMCP()


def _raw_path(request: httpx.Request) -> str:
    return request.url.raw_path.decode("ascii").split("?", 1)[0]


@pytest.fixture
def mock_routes(monkeypatch):
    """
    Patch a ProviderHttpClient's _create_client() to use httpx.MockTransport.

    routes keys:
        (METHOD, RAW_PATH) -> httpx.Response factory (callable taking the request)
                              OR (status_code, json, content[, headers])
    Unknown routes answer 404. Returns the list of handled requests.
    """

    def install(client, routes: dict):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            key = (request.method.upper(), _raw_path(request))

            if key not in routes:
                return httpx.Response(404, json={"message": "Not Found"})

            val = routes[key]
            if callable(val):
                return val(request)

            status_code, js, content, *rest = val
            headers = rest[0] if rest else None
            if content is not None:
                return httpx.Response(status_code, content=content, headers=headers)
            return httpx.Response(status_code, json=js, headers=headers)

        transport = httpx.MockTransport(handler)

        def _create_client(custom_headers=None):
            headers = {**client._headers, **(custom_headers or {})}
            return httpx.Client(
                base_url=client.base_url,
                headers=headers,
                auth=client._auth,
                timeout=client._timeout,
                transport=transport,
                follow_redirects=True,
            )

        monkeypatch.setattr(client, "_create_client", _create_client)
        return seen

    return install
