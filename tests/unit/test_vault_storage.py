"""Tests for the Vault KV v2 storage repository."""

import base64
import json
from datetime import UTC, datetime, timedelta

import httpx
import pytest
import respx

from certvault.exceptions import BackendError, KeyNotFoundError, StorageError
from certvault.infrastructure.implementations.vault import VaultStorageRepository
from certvault.models.config import VaultStorageConfig
from certvault.models.storage import Credential
from certvault.utils.timeutils import utcnow


@pytest.mark.asyncio
async def test_store_and_load(storage, fake_vault):
    """Test a stored value loads back unchanged."""
    await storage.store("staging/example.com", b"-----BEGIN CERTIFICATE-----")

    assert await storage.load("staging/example.com") == b"-----BEGIN CERTIFICATE-----"


@pytest.mark.asyncio
async def test_store_and_load_binary(storage, fake_vault):
    """Test bytes that are not valid UTF-8 load back unchanged."""
    value = bytes(range(256))

    await storage.store("foo.bar.com", value)

    assert await storage.load("foo.bar.com") == value


@pytest.mark.asyncio
async def test_store_wire_format(storage, fake_vault):
    """Test values are written base64 encoded under certmagic.data."""
    await storage.store("foo.bar.com", b"hello")

    request = fake_vault.requests[-1]
    assert request.method == "POST"
    assert request.url.path == "/v1/secrets/data/certificates/foo.bar.com"
    assert request.headers["X-Vault-Token"] == fake_vault.static_token
    assert json.loads(request.content) == {
        "data": {"certmagic": {"data": base64.b64encode(b"hello").decode()}}
    }


@pytest.mark.asyncio
async def test_store_overwrites(storage, fake_vault):
    """Test storing twice keeps the latest value."""
    await storage.store("foo.bar.com", b"first")
    await storage.store("foo.bar.com", b"second")

    assert await storage.load("foo.bar.com") == b"second"
    assert fake_vault.secrets["certificates/foo.bar.com"]["version"] == 2


@pytest.mark.asyncio
async def test_keys_are_lower_cased(storage, fake_vault):
    """Test mixed-case keys address the same secret."""
    await storage.store("Staging/Example.COM", b"value")

    assert "certificates/staging/example.com" in fake_vault.secrets
    assert await storage.load("staging/example.com") == b"value"


@pytest.mark.asyncio
async def test_store_empty_value(storage, fake_vault):
    """Test an empty value round-trips but does not count as existing."""
    await storage.store("empty.example.com", b"")

    assert await storage.load("empty.example.com") == b""
    assert await storage.exists("empty.example.com") is False


@pytest.mark.asyncio
async def test_store_error(storage, fake_vault):
    """Test a rejected write raises BackendError with Vault's messages."""
    fake_vault.fail(
        "POST",
        "data/certificates/foo.bar.com",
        500,
        ["storage unavailable", "try later"],
    )

    with pytest.raises(BackendError) as exc_info:
        await storage.store("foo.bar.com", b"value")

    assert exc_info.value.status_code == 500
    assert exc_info.value.errors == ["storage unavailable", "try later"]
    assert exc_info.value.message == "storage unavailable; try later"


@pytest.mark.asyncio
async def test_load_missing_key(storage, fake_vault):
    """Test loading a missing key raises KeyNotFoundError."""
    with pytest.raises(KeyNotFoundError) as exc_info:
        await storage.load("missing.example.com")

    assert exc_info.value.key == "missing.example.com"
    assert isinstance(exc_info.value, FileNotFoundError)


@pytest.mark.asyncio
async def test_load_permission_denied(fake_vault, vault_config):
    """Test a wrong token surfaces as BackendError, not as a missing key."""
    config = vault_config.model_copy(update={"token": "wrong-token"})
    repo = VaultStorageRepository(config)

    with pytest.raises(BackendError) as exc_info:
        await repo.load("foo.bar.com")

    assert exc_info.value.status_code == 403
    assert "permission denied" in exc_info.value.message
    await repo.aclose()


@respx.mock
@pytest.mark.asyncio
async def test_load_destroyed_version(vault_config):
    """Test a destroyed version counts as missing."""
    respx.get(vault_config.base_url + "secrets/data/certificates/foo.bar.com").mock(
        return_value=httpx.Response(
            404,
            json={
                "data": {
                    "data": None,
                    "metadata": {
                        "created_time": "2024-05-01T10:20:30.123456789Z",
                        "deletion_time": "",
                        "destroyed": True,
                        "version": 3,
                    },
                }
            },
        )
    )
    repo = VaultStorageRepository(vault_config)

    with pytest.raises(KeyNotFoundError):
        await repo.load("foo.bar.com")
    assert await repo.exists("foo.bar.com") is False
    await repo.aclose()


@respx.mock
@pytest.mark.asyncio
async def test_load_soft_deleted_version(vault_config):
    """Test a soft-deleted version counts as missing."""
    respx.get(vault_config.base_url + "secrets/data/certificates/foo.bar.com").mock(
        return_value=httpx.Response(
            404,
            json={
                "data": {
                    "data": None,
                    "metadata": {
                        "created_time": "2024-05-01T10:20:30Z",
                        "deletion_time": "2024-05-02T08:00:00.5Z",
                        "destroyed": False,
                        "version": 1,
                    },
                }
            },
        )
    )
    repo = VaultStorageRepository(vault_config)

    with pytest.raises(KeyNotFoundError):
        await repo.stat("foo.bar.com")
    await repo.aclose()


@respx.mock
@pytest.mark.asyncio
async def test_load_unreachable_vault(vault_config):
    """Test transport failures propagate unchanged."""
    respx.get(vault_config.base_url + "secrets/data/certificates/foo.bar.com").mock(
        side_effect=httpx.ConnectError("connection refused")
    )
    repo = VaultStorageRepository(vault_config)

    with pytest.raises(httpx.TransportError):
        await repo.load("foo.bar.com")
    await repo.aclose()


@respx.mock
@pytest.mark.asyncio
async def test_load_invalid_payload(vault_config):
    """Test an undecodable body raises BackendError."""
    respx.get(vault_config.base_url + "secrets/data/certificates/foo.bar.com").mock(
        return_value=httpx.Response(200, text="<html>proxy error</html>")
    )
    repo = VaultStorageRepository(vault_config)

    with pytest.raises(BackendError):
        await repo.load("foo.bar.com")
    await repo.aclose()


@pytest.mark.asyncio
async def test_delete(storage, fake_vault):
    """Test delete purges the key through the metadata path."""
    await storage.store("foo.bar.com", b"value")

    await storage.delete("foo.bar.com")

    request = fake_vault.requests[-1]
    assert request.method == "DELETE"
    assert request.url.path == "/v1/secrets/metadata/certificates/foo.bar.com"
    with pytest.raises(KeyNotFoundError):
        await storage.load("foo.bar.com")


@pytest.mark.asyncio
async def test_delete_missing_key(storage, fake_vault):
    """Test deleting a missing key raises KeyNotFoundError."""
    with pytest.raises(KeyNotFoundError):
        await storage.delete("missing.example.com")


@pytest.mark.asyncio
async def test_delete_error(storage, fake_vault):
    """Test a rejected delete raises BackendError."""
    fake_vault.fail("DELETE", "metadata/certificates/", 503, ["sealed"])

    with pytest.raises(BackendError) as exc_info:
        await storage.delete("foo.bar.com")

    assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_exists(storage, fake_vault):
    """Test exists for present and missing keys."""
    await storage.store("foo.bar.com", b"value")

    assert await storage.exists("foo.bar.com") is True
    assert await storage.exists("missing.example.com") is False


@pytest.mark.asyncio
async def test_exists_follows_store_and_delete(storage, fake_vault):
    """Test exists on one key before store, after store and after delete."""
    assert await storage.exists("foo.bar.com") is False

    await storage.store("foo.bar.com", b"value")
    assert await storage.exists("foo.bar.com") is True

    await storage.delete("foo.bar.com")
    assert await storage.exists("foo.bar.com") is False


@pytest.mark.asyncio
async def test_exists_swallows_errors(storage, fake_vault):
    """Test exists reports False when Vault fails."""
    fake_vault.fail("GET", "data/certificates/", 500)

    assert await storage.exists("foo.bar.com") is False


@pytest.mark.asyncio
async def test_stat(populated_storage, value_for):
    """Test stat reports size and creation time of the current value."""
    key = "staging/abc456/test1.whatever.com"

    info = await populated_storage.stat(key)

    assert info.key == key
    assert info.size == len(value_for(key)) == 79
    assert info.is_terminal is True
    assert info.modified == datetime(2024, 5, 1, 10, 20, 30, 123456, tzinfo=UTC)


@pytest.mark.asyncio
async def test_stat_missing_key(storage, fake_vault):
    """Test stat of a missing key raises KeyNotFoundError."""
    with pytest.raises(KeyNotFoundError):
        await storage.stat("missing.example.com")


@pytest.mark.asyncio
async def test_stat_error(storage, fake_vault):
    """Test stat raises BackendError for non-404 failures."""
    fake_vault.fail("GET", "data/certificates/", 502)

    with pytest.raises(BackendError) as exc_info:
        await storage.stat("foo.bar.com")

    assert exc_info.value.status_code == 502
    assert isinstance(exc_info.value, StorageError)


@pytest.mark.asyncio
async def test_custom_mount_and_prefix(fake_vault):
    """Test secrets_path and path_prefix shape every request path."""
    fake_vault.mount = "secrets/production"
    config = VaultStorageConfig(
        url=fake_vault.base_url,
        token=fake_vault.static_token,
        secrets_path="secrets/production",
        path_prefix="engineering/certmagic/certificates",
    )

    async with VaultStorageRepository(config) as repo:
        await repo.store("foo.bar.com", b"value")
        assert await repo.load("foo.bar.com") == b"value"

    assert fake_vault.requests[0].url.path == (
        "/v1/secrets/production/data/engineering/certmagic/certificates/foo.bar.com"
    )


@pytest.mark.asyncio
async def test_approle_storage_logs_in_and_revokes(fake_vault, approle_config):
    """Test an AppRole-backed storage logs in and revokes on exit."""
    async with VaultStorageRepository(approle_config) as repo:
        await repo.store("foo.bar.com", b"value")
        assert await repo.load("foo.bar.com") == b"value"
        token = repo.session.credential.token

    assert fake_vault.logins == 1
    assert token not in fake_vault.tokens
    assert fake_vault.requests[-1].url.path == "/v1/auth/token/revoke-self"


@pytest.mark.asyncio
async def test_approle_storage_renews_expired_token(fake_vault, approle_config):
    """Test operations log in again once the AppRole lease has lapsed."""
    async with VaultStorageRepository(approle_config) as repo:
        await repo.store("foo.bar.com", b"first")

        fake_vault.expire_tokens()
        repo.session._credential = Credential(
            token=repo.session.credential.token,
            mechanism="approle",
            expires_at=utcnow() - timedelta(seconds=1),
        )

        await repo.store("foo.bar.com", b"second")
        assert await repo.load("foo.bar.com") == b"second"
        assert repo.session.credential.token == "s.approle-2"

    assert fake_vault.logins == 2


@pytest.mark.asyncio
async def test_failed_login_surfaces_permission_error(fake_vault):
    """Test operations fail with Vault's permission error after a failed login."""
    config = VaultStorageConfig(
        url=fake_vault.base_url, approle_role_id="wrong", approle_secret_id="wrong"
    )

    async with VaultStorageRepository(config) as repo:
        with pytest.raises(BackendError) as exc_info:
            await repo.store("foo.bar.com", b"value")

    assert exc_info.value.status_code == 403
