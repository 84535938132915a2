"""S3-compatible storage backend using requests (works with any S3-protocol object service)."""

import logging
import mimetypes
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Iterator
from urllib.parse import quote
from xml.etree import ElementTree

import requests
from requests.adapters import HTTPAdapter
from requests_aws4auth import AWS4Auth
from urllib3.util.retry import Retry

from objectstore.errors import BackendUnavailableError, ObjectNotFoundError
from objectstore.keys import KeyCodec, folder_of, is_folder_marker
from objectstore.storage.base import Object

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://s3.amazonaws.com"
S3_NS = {"s3": "http://s3.amazonaws.com/doc/2006-03-01/"}
SSE_HEADER = "x-amz-server-side-encryption"
REDIRECT_CODES = (301, 302, 307, 308)


def _find_text(elem: ElementTree.Element, path: str) -> str | None:
    """Find text by namespaced path, falling back to un-namespaced responses."""
    found = elem.find(f"s3:{path}", S3_NS)
    if found is None:
        found = elem.find(path)
    return found.text if found is not None else None


def _find_all(elem: ElementTree.Element, path: str) -> list[ElementTree.Element]:
    return elem.findall(f"s3:{path}", S3_NS) or elem.findall(path)


def _parse_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _error_code(resp: requests.Response) -> str | None:
    """Extract the S3 <Error><Code> from a response body, if any."""
    if not resp.content:
        return None
    try:
        root = ElementTree.fromstring(resp.content)
    except ElementTree.ParseError:
        return None
    return _find_text(root, "Code")


class S3RequestsStorage:
    """Storage backend using requests + AWS4Auth against an S3-compatible service.

    Uses path-style addressing (`{endpoint}/{bucket}/{key}`). The bucket is
    not checked at construction; a missing bucket is reported as
    BackendUnavailableError by the first operation.

    Transport retries are disabled unless `max_retries` is set.
    """

    def __init__(
        self,
        bucket: str,
        prefix: str = "",
        endpoint: str = DEFAULT_ENDPOINT,
        encryption: str = "",
        access_key: str | None = None,
        secret_key: str | None = None,
        region: str | None = None,
        timeout: float = 30,
        max_retries: int = 0,
    ):
        self.bucket = bucket
        self.endpoint = (endpoint or DEFAULT_ENDPOINT).rstrip("/")
        self.base_url = f"{self.endpoint}/{quote(bucket, safe='')}"
        self.codec = KeyCodec(prefix)
        self.encryption = encryption
        self.timeout = timeout

        self.session = requests.Session()
        if access_key and secret_key:
            # AWS4Auth with empty region works for most S3-compatible providers
            self.session.auth = AWS4Auth(access_key, secret_key, region or "", "s3")

        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=2,
            status_forcelist=[500, 502, 503, 504],
            allowed_methods=["HEAD", "GET", "PUT", "DELETE"],
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

        # Disable automatic redirect following
        self.session.max_redirects = 0

        self.name = f"S3 bucket '{bucket}' at {self.endpoint}"

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{quote(path, safe='/')}"

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        """Send a request, mapping transport failures to BackendUnavailableError."""
        try:
            resp = self.session.request(
                method, url, timeout=self.timeout, allow_redirects=False, **kwargs
            )
        except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
            logger.warning("%s %s failed: %s", method, url, e)
            raise BackendUnavailableError(f"{self.name} is unreachable: {e}", e) from e
        except requests.exceptions.RequestException as e:
            raise BackendUnavailableError(f"{method} {url} failed: {e}", e) from e

        if resp.status_code in REDIRECT_CODES:
            location = resp.headers.get("Location", "unknown")
            raise BackendUnavailableError(
                f"S3 endpoint returned redirect ({resp.status_code}) to: {location}. "
                f"Check the endpoint and bucket configuration."
            )
        return resp

    def _unavailable(self, action: str, resp: requests.Response) -> BackendUnavailableError:
        code = _error_code(resp)
        if code == "NoSuchBucket":
            message = f"Bucket '{self.bucket}' does not exist at {self.endpoint}"
        else:
            message = f"S3 {action} failed: {resp.status_code} {code or resp.reason}"
        logger.warning(message)
        return BackendUnavailableError(message)

    def put_object(self, key: str, content: bytes, content_type: str | None = None) -> None:
        """Upload content; the encryption header is sent on every put when configured."""
        path = self.codec.to_storage(key)

        if content_type is None:
            guessed, _ = mimetypes.guess_type(path)
            content_type = guessed or "application/octet-stream"

        headers = {"Content-Type": content_type}
        if self.encryption:
            headers[SSE_HEADER] = self.encryption

        resp = self._request("PUT", self._url(path), data=content, headers=headers)
        if resp.status_code not in (200, 201):
            raise self._unavailable("upload", resp)
        logger.debug("Stored %s (%d bytes) in %s", path, len(content), self.name)

    def get_object(self, key: str) -> Object:
        path = self.codec.to_storage(key)

        resp = self._request("GET", self._url(path))
        if resp.status_code == 404 and _error_code(resp) != "NoSuchBucket":
            raise ObjectNotFoundError(f"Object '{key}' not found in {self.name}")
        if resp.status_code != 200:
            raise self._unavailable("download", resp)

        last_modified = resp.headers.get("Last-Modified")
        return Object(
            key=self.codec.from_storage(path),
            content=resp.content,
            content_type=resp.headers.get("Content-Type"),
            last_modified=parsedate_to_datetime(last_modified) if last_modified else None,
            size=len(resp.content),
            etag=(resp.headers.get("ETag") or "").strip('"') or None,
        )

    def delete_object(self, key: str) -> None:
        path = self.codec.to_storage(key)

        resp = self._request("DELETE", self._url(path))
        if resp.status_code in (200, 204):
            return
        if resp.status_code == 404 and _error_code(resp) != "NoSuchBucket":
            # Already deleted
            return
        raise self._unavailable("delete", resp)

    def _list_pages(self, prefix: str, delimiter: str | None = None) -> Iterator[ElementTree.Element]:
        """Yield ListObjectsV2 result pages, following continuation tokens."""
        continuation_token = None

        while True:
            params = {"list-type": "2", "prefix": prefix}
            if delimiter:
                params["delimiter"] = delimiter
            if continuation_token:
                params["continuation-token"] = continuation_token

            resp = self._request("GET", self.base_url, params=params)
            if resp.status_code != 200:
                raise self._unavailable("list", resp)

            try:
                root = ElementTree.fromstring(resp.content)
            except ElementTree.ParseError as e:
                raise BackendUnavailableError(f"S3 list returned invalid XML: {e}", e) from e
            yield root

            if _find_text(root, "IsTruncated") != "true":
                break
            continuation_token = _find_text(root, "NextContinuationToken")
            if not continuation_token:
                break

    def list_objects(self, prefix: str = "") -> list[Object]:
        search = self.codec.storage_prefix(prefix)

        objects = {}
        for page in self._list_pages(search):
            for content in _find_all(page, "Contents"):
                path = _find_text(content, "Key")
                if not path or is_folder_marker(path) or not path.startswith(search):
                    continue
                key = self.codec.from_storage(path)
                objects[key] = Object(
                    key=key,
                    last_modified=_parse_iso(_find_text(content, "LastModified")),
                    size=int(_find_text(content, "Size") or 0),
                    etag=(_find_text(content, "ETag") or "").strip('"') or None,
                )
        return [objects[key] for key in sorted(objects)]

    def list_folders(self, prefix: str = "") -> list[str]:
        search = self.codec.folder_prefix(prefix)

        folders = set()
        for page in self._list_pages(search, delimiter="/"):
            for common_prefix in _find_all(page, "CommonPrefixes"):
                path = _find_text(common_prefix, "Prefix")
                if not path or not path.startswith(search):
                    continue
                folder = folder_of(path, len(search))
                if folder is not None:
                    folders.add(folder)
        return sorted(folders)
