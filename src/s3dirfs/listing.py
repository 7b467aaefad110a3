from s3dirfs import paths
from s3dirfs.status import FileStatus

import collections
import logging


logger = logging.getLogger(__name__)


def accept_all_but_self(dir_path):
    def accept(status):
        return status.path != dir_path

    return accept


def accept_files_only(dir_path):
    def accept(status):
        return status.is_file() and status.path != dir_path

    return accept


class ListingIterator:
    """Lazy iterator over the entries of a directory.

    One LIST call is issued per page, and only once the previous page has
    been consumed. Common prefixes become directory statuses, object
    summaries become file statuses. Directory markers are never yielded
    as files.

    ``path_filter`` is called with the qualified path and ``acceptor``
    with the FileStatus; an entry is yielded when both accept it. When
    ``resolve_directory`` is given, sub-directories are resolved through
    it instead of being built from the prefix alone.
    """

    def __init__(
        self,
        store,
        dir_path,
        max_keys=1000,
        path_filter=None,
        acceptor=None,
        recursive=False,
        resolve_directory=None,
    ):
        self._store = store
        self.dir_path = dir_path
        self._dir_key = paths.maybe_add_trailing_slash(paths.path_to_key(dir_path))
        self._max_keys = max_keys
        self._path_filter = path_filter
        self._acceptor = acceptor or accept_all_but_self(dir_path)
        self._delimiter = None if recursive else paths.SEPARATOR
        self._resolve_directory = resolve_directory
        self._batch = collections.deque()
        self._continuation_token = None
        self._done = False
        self.pages_fetched = 0

    def __iter__(self):
        return self

    def __next__(self):
        while not self._batch:
            if self._done:
                raise StopIteration
            self._fetch_page()
        return self._batch.popleft()

    def _offer(self, status):
        if self._path_filter is not None and not self._path_filter(status.path):
            return
        if self._acceptor(status):
            self._batch.append(status)

    def _fetch_page(self):
        result = self._store.list_objects(
            prefix=self._dir_key,
            delimiter=self._delimiter,
            max_keys=self._max_keys,
            continuation_token=self._continuation_token,
        )
        self.pages_fetched += 1
        logger.debug(
            "Listed page %d of %r: %r", self.pages_fetched, self._dir_key, result
        )

        for summary in result.object_summaries:
            if summary.key.endswith(paths.SEPARATOR):
                continue
            self._offer(
                FileStatus.file(
                    paths.key_to_path(summary.key),
                    summary.size,
                    summary.last_modified,
                )
            )

        for prefix in result.common_prefixes:
            if prefix == self._dir_key:
                continue
            path = paths.key_to_path(prefix)
            if self._resolve_directory is not None:
                status = self._resolve_directory(path)
            else:
                status = FileStatus.directory(path)
            self._offer(status)

        self._continuation_token = result.continuation_token
        if result.is_truncated and not result.continuation_token:
            logger.warning(
                "Truncated listing of %r carried no continuation token, stopping",
                self._dir_key,
            )
            self._done = True
        else:
            self._done = not result.is_truncated
