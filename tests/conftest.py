"""Global pytest configuration and fixtures for all tests."""

import json
import os
from datetime import timedelta

import httpx
import pytest
import pytest_asyncio
import respx

from certvault.infrastructure.implementations.vault import VaultStorageRepository
from certvault.models.config import VaultStorageConfig

BASE_URL = "http://vault.test:8200"
STATIC_TOKEN = "dead-beef"
ROLE_ID = "test-role-id"
SECRET_ID = "test-secret-id"
CREATED_TIME = "2024-05-01T10:20:30.123456789Z"

FIXTURE_KEYS = [
    "foo.bar.com",
    "foo.bar.baz",
    "production/test1.baz.com",
    "production/test2.baz.com",
    "production/test3.baz.com",
    "staging/abc123/test3.whatever.com",
    "staging/abc456/test1.whatever.com",
    "staging/abc456/test3.whatever.com",
    "staging/test3.baz.com",
    "staging/test3.quux.org",
]


def fixture_value(key: str) -> bytes:
    return f"This is some long text we want to store for '{key}'".encode()


@pytest.fixture(scope="session", autouse=True)
def set_test_env_vars():
    """
    Set environment variables for testing.

    Points the settings at a fake Vault so nothing reaches a real server.
    """
    # Store original values to restore after tests
    original_env = {}

    test_env_vars = {
        "STORAGE_PROVIDER": "vault",
        "VAULT_URL": BASE_URL,
        "VAULT_TOKEN": STATIC_TOKEN,
        "LOG_LEVEL": "DEBUG",
    }

    for key, value in test_env_vars.items():
        original_env[key] = os.environ.get(key)
        os.environ[key] = value

    yield

    # Restore original environment after all tests
    for key, original_value in original_env.items():
        if original_value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = original_value


class FakeVault:
    """
    In-memory Vault serving the KV v2 and AppRole endpoints the storage uses.

    Secrets are kept by their path below the ``secrets`` mount, e.g.
    ``certificates/staging/test3.baz.com``.
    """

    base_url = BASE_URL
    static_token = STATIC_TOKEN

    def __init__(self, mount: str = "secrets"):
        self.mount = mount
        self.secrets: dict[str, dict] = {}
        self.tokens = {STATIC_TOKEN}
        self.lease_duration = 30
        self.logins = 0
        self.requests: list[httpx.Request] = []
        self.failures: list[tuple[str, str, int, list[str]]] = []

    def fail(
        self,
        method: str,
        path_fragment: str,
        status_code: int,
        errors: list[str] | None = None,
    ) -> None:
        """Answer matching requests with an error instead of serving them."""
        self.failures.append((method, path_fragment, status_code, errors or []))

    def expire_tokens(self) -> None:
        """Invalidate every token obtained through AppRole login."""
        self.tokens = {STATIC_TOKEN}

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/v1/")

        for method, fragment, status_code, errors in self.failures:
            if request.method == method and fragment in path:
                return httpx.Response(status_code, json={"errors": errors})

        if path == "auth/approle/login":
            return self._login(request)

        token = request.headers.get("X-Vault-Token", "")
        if token not in self.tokens:
            return httpx.Response(403, json={"errors": ["permission denied"]})

        if path == "auth/token/revoke-self":
            self.tokens.discard(token)
            return httpx.Response(204)

        data_prefix = f"{self.mount}/data/"
        metadata_prefix = f"{self.mount}/metadata/"
        if path.startswith(data_prefix):
            return self._data(request, path[len(data_prefix) :])
        if path.startswith(metadata_prefix):
            return self._metadata(request, path[len(metadata_prefix) :])

        return httpx.Response(404, json={"errors": []})

    def _login(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if body.get("role_id") != ROLE_ID or body.get("secret_id") != SECRET_ID:
            return httpx.Response(400, json={"errors": ["invalid role or secret ID"]})

        self.logins += 1
        token = f"s.approle-{self.logins}"
        self.tokens.add(token)
        return httpx.Response(
            200,
            json={
                "auth": {
                    "client_token": token,
                    "accessor": f"accessor-{self.logins}",
                    "policies": ["default"],
                    "lease_duration": self.lease_duration,
                    "renewable": True,
                }
            },
        )

    def _data(self, request: httpx.Request, key: str) -> httpx.Response:
        if request.method == "GET":
            secret = self.secrets.get(key)
            if secret is None:
                return httpx.Response(404, json={"errors": []})
            return httpx.Response(
                200,
                json={
                    "request_id": "req-1",
                    "data": {
                        "data": {"certmagic": secret["certmagic"]},
                        "metadata": {
                            "created_time": CREATED_TIME,
                            "deletion_time": "",
                            "destroyed": False,
                            "version": secret["version"],
                        },
                    },
                },
            )

        if request.method == "POST":
            body = json.loads(request.content)
            current = self.secrets.get(key, {}).get("version", 0)
            cas = (body.get("options") or {}).get("cas")
            if cas is not None and cas != current:
                return httpx.Response(
                    400,
                    json={
                        "errors": [
                            "check-and-set parameter did not match the current version"
                        ]
                    },
                )
            self.secrets[key] = {
                "certmagic": body["data"]["certmagic"],
                "version": current + 1,
            }
            return httpx.Response(
                200, json={"data": {"version": current + 1, "created_time": CREATED_TIME}}
            )

        return httpx.Response(405, json={"errors": ["unsupported operation"]})

    def _metadata(self, request: httpx.Request, key: str) -> httpx.Response:
        if request.method == "DELETE":
            if self.secrets.pop(key, None) is None:
                return httpx.Response(404, json={"errors": []})
            return httpx.Response(204)

        if request.method == "LIST":
            group = key.rstrip("/") + "/" if key.rstrip("/") else ""
            children = set()
            for stored in self.secrets:
                if stored.startswith(group):
                    rest = stored[len(group) :]
                    head, sep, _ = rest.partition("/")
                    children.add(head + sep)
            if not children:
                return httpx.Response(404, json={"errors": []})
            return httpx.Response(200, json={"data": {"keys": sorted(children)}})

        return httpx.Response(405, json={"errors": ["unsupported operation"]})


@pytest.fixture
def fake_vault():
    """Fake Vault answering every request sent to BASE_URL."""
    vault = FakeVault()
    with respx.mock(base_url=BASE_URL, assert_all_called=False) as router:
        router.route().mock(side_effect=vault.handle)
        yield vault


@pytest.fixture
def vault_config():
    """Static-token configuration with fast lock polling."""
    return VaultStorageConfig(
        url=BASE_URL,
        token=STATIC_TOKEN,
        lock_timeout=timedelta(seconds=15),
        lock_polling_interval=timedelta(milliseconds=50),
    )


@pytest.fixture
def approle_config():
    """AppRole configuration without a static token."""
    return VaultStorageConfig(
        url=BASE_URL,
        approle_role_id=ROLE_ID,
        approle_secret_id=SECRET_ID,
        lock_timeout=timedelta(seconds=15),
        lock_polling_interval=timedelta(milliseconds=50),
    )


@pytest_asyncio.fixture
async def storage(fake_vault, vault_config):
    """Vault storage talking to the fake Vault."""
    repo = VaultStorageRepository(vault_config)
    yield repo
    await repo.aclose()


@pytest_asyncio.fixture
async def populated_storage(storage):
    """Storage holding the ten fixture keys."""
    for key in FIXTURE_KEYS:
        await storage.store(key, fixture_value(key))
    return storage


@pytest.fixture
def fixture_keys():
    """The ten keys stored by populated_storage."""
    return list(FIXTURE_KEYS)


@pytest.fixture
def value_for():
    """Value stored by populated_storage for a key."""
    return fixture_value
