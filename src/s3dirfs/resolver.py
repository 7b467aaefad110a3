from s3dirfs import paths
from s3dirfs.probes import check_probes
from s3dirfs.probes import StatusProbe
from s3dirfs.status import EmptyFlag
from s3dirfs.status import FileStatus

import logging


logger = logging.getLogger(__name__)


class PathStatusResolver:
    """Classify a path with as few store calls as possible.

    Probes run in cost order (HEAD on the key, HEAD on the directory
    marker, LIST under the directory prefix) and the first hit wins.
    Statuses are never cached.
    """

    def __init__(self, store, qualify=paths.qualify):
        self._store = store
        self._qualify = qualify

    def resolve(self, path, probes, need_empty_flag=False):
        check_probes(probes, need_empty_flag)
        qualified = self._qualify(path)
        key = paths.path_to_key(qualified)
        logger.debug("Resolving %s (key=%r, probes=%r)", qualified, key, probes)

        # Root always exists
        if not key:
            return FileStatus.directory(qualified, EmptyFlag.EMPTY)

        if StatusProbe.HEAD in probes and not key.endswith(paths.SEPARATOR):
            meta = self._store.head_object(key)
            if meta is not None:
                logger.debug("Found file %s", key)
                return FileStatus.file(
                    qualified, meta.get("ContentLength", 0), meta.get("LastModified")
                )

        dir_key = paths.maybe_add_trailing_slash(key)
        if StatusProbe.DIR_MARKER in probes and not need_empty_flag and dir_key:
            meta = self._store.head_object(dir_key)
            if meta is not None:
                logger.debug("Found directory marker %s", dir_key)
                return FileStatus.directory(
                    qualified,
                    length=meta.get("ContentLength", 0),
                    mtime=meta.get("LastModified"),
                )

        if StatusProbe.LIST in probes:
            # the marker itself plus one child is enough to tell emptiness
            list_size = 2 if need_empty_flag else 1
            result = self._list_at_least(dir_key, list_size)
            if len(result):
                if not need_empty_flag:
                    return FileStatus.directory(qualified)
                if result.represents_empty_directory(dir_key):
                    logger.debug("Found empty directory %s", dir_key)
                    return FileStatus.directory(qualified, EmptyFlag.EMPTY)
                return FileStatus.directory(qualified, EmptyFlag.NOT_EMPTY)

        logger.debug("Not found: %s", qualified)
        raise FileNotFoundError(f"No such file or directory: {qualified}")

    def _list_at_least(self, dir_key, list_size):
        """List until ``list_size`` entries are seen or the listing ends."""
        result = self._store.list_objects(
            prefix=dir_key, delimiter=paths.SEPARATOR, max_keys=list_size
        )
        while result.is_truncated and len(result) < list_size:
            logger.debug(
                "Continuing truncated listing of %s (%d entries so far)",
                dir_key,
                len(result),
            )
            page = self._store.list_objects(
                prefix=dir_key,
                delimiter=paths.SEPARATOR,
                max_keys=list_size,
                continuation_token=result.continuation_token,
            )
            result.extend(page)
        return result
