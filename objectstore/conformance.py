"""Black-box conformance checks runnable against any storage backend."""

import concurrent.futures
import logging
from typing import Callable

from objectstore.errors import BackendUnavailableError, ObjectNotFoundError, StorageError
from objectstore.storage.base import StorageBackend

logger = logging.getLogger(__name__)


class ConformanceError(AssertionError):
    """A backend broke the storage contract."""
    pass


class ConformanceSuite:
    """Populate a backend with a known key layout and verify its behavior.

    Writes `count` objects at the top level (`{i}{name}`) and `count`
    objects one folder down (`testdir{i}/{name}`).
    """

    def __init__(
        self,
        storage: StorageBackend,
        count: int = 100,
        content: bytes = b"some object",
        name: str = "deleteme.txt",
    ):
        self.storage = storage
        self.count = count
        self.content = content
        self.name = name

    def top_level_keys(self) -> list[str]:
        return [f"{i}{self.name}" for i in range(self.count)]

    def nested_keys(self) -> list[str]:
        return [f"testdir{i}/{self.name}" for i in range(self.count)]

    def all_keys(self) -> list[str]:
        return self.top_level_keys() + self.nested_keys()

    def _run(self, func: Callable[[str], None], workers: int) -> None:
        keys = self.all_keys()
        if workers <= 1:
            for key in keys:
                func(key)
            return
        with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
            # list() re-raises the first failure
            list(executor.map(func, keys))

    def populate(self, workers: int = 1) -> None:
        """Write every test key."""
        logger.debug("Populating %d objects in %s", 2 * self.count, self.storage.name)
        self._run(lambda key: self.storage.put_object(key, self.content), workers)

    def teardown(self, workers: int = 1) -> None:
        """Delete every test key, then delete again to check idempotence."""

        def delete_twice(key: str) -> None:
            self.storage.delete_object(key)
            self.storage.delete_object(key)

        self._run(delete_twice, workers)

        for key in self.top_level_keys()[:1] + self.nested_keys()[:1]:
            try:
                self.storage.get_object(key)
            except ObjectNotFoundError:
                continue
            raise ConformanceError(f"{self.storage.name}: '{key}' still readable after delete")

    def check_listing(self) -> tuple[int, int]:
        """Verify object and folder counts. Returns (objects, folders)."""
        objects = self.storage.list_objects("")
        keys = [obj.key for obj in objects]
        if len(keys) != len(set(keys)):
            raise ConformanceError(f"{self.storage.name}: duplicate keys in listing")
        if len(objects) != 2 * self.count:
            raise ConformanceError(
                f"{self.storage.name}: listed {len(objects)} objects, expected {2 * self.count}"
            )

        folders = self.storage.list_folders("")
        if len(folders) != len(set(folders)):
            raise ConformanceError(f"{self.storage.name}: duplicate folders in listing")
        if len(folders) != self.count:
            raise ConformanceError(
                f"{self.storage.name}: listed {len(folders)} folders, expected {self.count}"
            )
        return len(objects), len(folders)

    def check_round_trip(self) -> None:
        """Verify a known key returns its original content."""
        key = self.top_level_keys()[0]
        obj = self.storage.get_object(key)
        if obj.content != self.content:
            raise ConformanceError(f"{self.storage.name}: content mismatch for '{key}'")


def check_broken(storage: StorageBackend) -> None:
    """Verify every operation on a misconfigured backend fails as unavailable."""
    operations: dict[str, Callable[[], object]] = {
        "put_object": lambda: storage.put_object("this-file-will-not-upload.txt", b""),
        "get_object": lambda: storage.get_object("this-file-cannot-possibly-exist.tgz"),
        "list_objects": lambda: storage.list_objects(""),
        "list_folders": lambda: storage.list_folders(""),
    }
    for operation, call in operations.items():
        try:
            call()
        except BackendUnavailableError:
            continue
        except StorageError as e:
            raise ConformanceError(
                f"{storage.name}: {operation} raised {type(e).__name__}, "
                f"expected BackendUnavailableError"
            ) from e
        raise ConformanceError(f"{storage.name}: {operation} succeeded on a broken backend")
