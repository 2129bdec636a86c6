from typing import Dict

import pytest
from minio.error import MinioException

from signcompose import storage as storage_module


@pytest.fixture
def mock_storage(monkeypatch) -> Dict[str, bytes]:
    store: Dict[str, bytes] = {}

    def fake_put_bytes(key: str, data: bytes, content_type: str = "application/octet-stream"):
        store[key] = bytes(data)

    def fake_get_bytes(key: str) -> bytes:
        if key not in store:
            raise MinioException(f"NoSuchKey: {key}")
        return store[key]

    monkeypatch.setattr(storage_module, "put_bytes", fake_put_bytes)
    monkeypatch.setattr(storage_module, "get_bytes", fake_get_bytes)
    return store


@pytest.fixture
def dict_fetch():
    """A fetch callable over a plain dict, for tests that bypass MinIO."""
    from signcompose.errors import StorageFetchFailed

    def factory(store: Dict[str, bytes]):
        def fetch(ref):
            if ref not in store:
                raise StorageFetchFailed(f"missing {ref}")
            return store[ref]
        return fetch

    return factory
