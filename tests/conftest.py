"""Shared fixtures for storage tests."""

from datetime import datetime, timezone
from email.utils import format_datetime
from hashlib import md5
from urllib.parse import unquote
from xml.sax.saxutils import escape

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from objectstore.storage.local import LocalStorage
from objectstore.storage.memory import MemoryMedium, MemoryStorage
from objectstore.storage.s3 import S3RequestsStorage

FAKE_ENDPOINT = "http://s3.test"
TEST_BUCKET = "test-bucket"
MISSING_BUCKET = "fake-bucket-cant-exist-fbce123"


def make_response(status_code: int, content: bytes = b"", headers: dict | None = None) -> requests.Response:
    """Build a requests.Response without touching the network."""
    resp = requests.Response()
    resp.status_code = status_code
    resp._content = content
    resp.headers = CaseInsensitiveDict(headers or {})
    resp.reason = {200: "OK", 204: "No Content", 404: "Not Found", 403: "Forbidden"}.get(status_code, "")
    return resp


def error_response(status_code: int, code: str) -> requests.Response:
    body = f"<?xml version='1.0' encoding='UTF-8'?><Error><Code>{code}</Code></Error>"
    return make_response(status_code, body.encode(), {"Content-Type": "application/xml"})


class FakeS3Service:
    """Minimal S3 path-style endpoint served through session.request."""

    def __init__(self, buckets: list[str], page_size: int = 50):
        self.buckets: dict[str, dict[str, dict]] = {bucket: {} for bucket in buckets}
        self.page_size = page_size
        self.requests: list[tuple[str, str, dict]] = []

    def request(self, method, url, params=None, data=None, headers=None, **kwargs):
        self.requests.append((method, url, dict(headers or {})))
        path = unquote(url[len(FAKE_ENDPOINT) + 1:])
        bucket, _, key = path.partition("/")

        objects = self.buckets.get(bucket)
        if objects is None:
            return error_response(404, "NoSuchBucket")

        if not key:
            return self._list(objects, params or {})
        if method == "PUT":
            objects[key] = {
                "content": bytes(data or b""),
                "headers": dict(headers or {}),
                "last_modified": datetime.now(timezone.utc).replace(microsecond=0),
            }
            return make_response(200)
        if method == "GET":
            stored = objects.get(key)
            if stored is None:
                return error_response(404, "NoSuchKey")
            return make_response(
                200,
                stored["content"],
                {
                    "Content-Type": stored["headers"].get("Content-Type", "application/octet-stream"),
                    "Last-Modified": format_datetime(stored["last_modified"], usegmt=True),
                    "ETag": f'"{md5(stored["content"]).hexdigest()}"',
                },
            )
        if method == "DELETE":
            objects.pop(key, None)
            return make_response(204)
        return make_response(405)

    def _list(self, objects: dict, params: dict) -> requests.Response:
        prefix = params.get("prefix", "")
        delimiter = params.get("delimiter")
        start = int(params.get("continuation-token") or 0)

        entries = []
        seen_prefixes = set()
        for key in sorted(objects):
            if not key.startswith(prefix):
                continue
            rest = key[len(prefix):]
            if delimiter and delimiter in rest:
                common = prefix + rest.split(delimiter)[0] + delimiter
                if common not in seen_prefixes:
                    seen_prefixes.add(common)
                    entries.append(("prefix", common))
            else:
                entries.append(("key", key))

        page = entries[start:start + self.page_size]
        truncated = start + self.page_size < len(entries)

        parts = ['<ListBucketResult xmlns="http://s3.amazonaws.com/doc/2006-03-01/">']
        for kind, value in page:
            if kind == "prefix":
                parts.append(f"<CommonPrefixes><Prefix>{escape(value)}</Prefix></CommonPrefixes>")
            else:
                stored = objects[value]
                parts.append(
                    "<Contents>"
                    f"<Key>{escape(value)}</Key>"
                    f"<LastModified>{stored['last_modified'].strftime('%Y-%m-%dT%H:%M:%S.000Z')}</LastModified>"
                    f"<ETag>&quot;{md5(stored['content']).hexdigest()}&quot;</ETag>"
                    f"<Size>{len(stored['content'])}</Size>"
                    "</Contents>"
                )
        parts.append(f"<IsTruncated>{'true' if truncated else 'false'}</IsTruncated>")
        if truncated:
            parts.append(f"<NextContinuationToken>{start + self.page_size}</NextContinuationToken>")
        parts.append("</ListBucketResult>")
        return make_response(200, "".join(parts).encode(), {"Content-Type": "application/xml"})


@pytest.fixture
def fake_s3():
    return FakeS3Service([TEST_BUCKET])


def make_s3_storage(service: FakeS3Service, bucket: str = TEST_BUCKET, **kwargs) -> S3RequestsStorage:
    storage = S3RequestsStorage(bucket, endpoint=FAKE_ENDPOINT, **kwargs)
    storage.session.request = service.request
    return storage


@pytest.fixture
def s3_storage(fake_s3):
    return make_s3_storage(fake_s3)


@pytest.fixture
def medium():
    return MemoryMedium([TEST_BUCKET])


@pytest.fixture
def memory_storage(medium):
    return MemoryStorage(medium, TEST_BUCKET)


@pytest.fixture
def local_storage(tmp_path):
    return LocalStorage(str(tmp_path))
