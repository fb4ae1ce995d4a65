"""
Physical Vault paths for logical keys.

KV v2 keeps values under a ``data`` namespace and version metadata under a
``metadata`` namespace of the same mount:

    {secrets_path}/data/{path_prefix}/{key}       read / write
    {secrets_path}/metadata/{path_prefix}/{key}   delete / list
"""

from enum import Enum


class SecretNamespace(str, Enum):
    DATA = "data"
    METADATA = "metadata"


SECRET_PATH_FORMAT = "{secrets_path}/{namespace}/{path_prefix}/{key}"


def secret_path(
    namespace: SecretNamespace, secrets_path: str, path_prefix: str, key: str
) -> str:
    """
    Render the physical path of a key.

    Inputs are not validated; the result is lower-cased.

    Args:
        namespace: data or metadata
        secrets_path: Mount path of the secrets engine
        path_prefix: Path inside the engine
        key: Logical key or listing prefix

    Returns:
        Path relative to the ``/v1/`` API root
    """
    return SECRET_PATH_FORMAT.format(
        secrets_path=secrets_path,
        namespace=namespace.value,
        path_prefix=path_prefix,
        key=key,
    ).lower()


def data_path(secrets_path: str, path_prefix: str, key: str) -> str:
    return secret_path(SecretNamespace.DATA, secrets_path, path_prefix, key)


def metadata_path(secrets_path: str, path_prefix: str, key: str) -> str:
    return secret_path(SecretNamespace.METADATA, secrets_path, path_prefix, key)
