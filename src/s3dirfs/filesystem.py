from s3dirfs import paths
from s3dirfs import probes
from s3dirfs.executor import BlockingThreadPoolExecutor
from s3dirfs.executor import CopyFileContext
from s3dirfs.executor import CopyFileTask
from s3dirfs.executor import SemaphoredExecutor
from s3dirfs.interfaces import IFileSystem
from s3dirfs.listing import accept_all_but_self
from s3dirfs.listing import accept_files_only
from s3dirfs.listing import ListingIterator
from s3dirfs.resolver import PathStatusResolver
from s3dirfs.status import ContentSummary
from s3dirfs.status import EmptyFlag
from s3dirfs.streams import S3InputStream
from s3dirfs.streams import S3OutputStream
from zope.interface import implementer

import errno
import io
import logging


logger = logging.getLogger(__name__)


class DirectoryNotEmptyError(OSError):
    """A non-recursive delete hit a directory with content."""


class RootDirectoryError(OSError):
    """The root directory cannot be deleted."""


@implementer(IFileSystem)
class S3FileSystem:
    """Directory tree emulated on top of a flat object store.

    A directory exists if it is the root, if a zero-byte marker object
    ``<key>/`` exists, or if any key starts with ``<key>/``. Every
    operation resolves paths afresh; nothing is cached.

    Multi-key operations (recursive delete, directory rename) are not
    atomic: a crash midway can leave source and destination both
    partially present.
    """

    scheme = "s3"

    def __init__(
        self,
        store,
        bucket_name=None,
        working_dir=paths.ROOT,
        max_paging_keys=1000,
        max_copy_threads=25,
        max_copy_tasks=1000,
        max_concurrent_copy_tasks_per_dir=5,
        put_if_not_exist=False,
        upload_part_size=8 * 1024 * 1024,
    ):
        self._store = store
        self.bucket_name = bucket_name if bucket_name is not None else store.bucket_name
        self.uri = f"{self.scheme}://{self.bucket_name}"
        self._working_dir = paths.qualify(working_dir)
        self._max_paging_keys = max_paging_keys
        self._max_concurrent_copy_tasks_per_dir = max_concurrent_copy_tasks_per_dir
        self._put_if_not_exist = put_if_not_exist
        self._upload_part_size = upload_part_size
        self._resolver = PathStatusResolver(store, self.qualify)
        self._copy_pool = BlockingThreadPoolExecutor(
            max_copy_threads, max_copy_tasks, thread_name_prefix="s3dirfs-copy"
        )

    def __repr__(self):
        return f"<S3FileSystem {self.uri}>"

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def close(self):
        self._copy_pool.shutdown(wait=True)

    # -- Paths --

    def qualify(self, path):
        return paths.qualify(path, self._working_dir, self.bucket_name)

    def get_working_directory(self):
        return self._working_dir

    def set_working_directory(self, path):
        self._working_dir = self.qualify(path)

    # -- Status --

    def get_path_status(self, path, probe_set=probes.ALL, need_empty_flag=False):
        return self._resolver.resolve(path, probe_set, need_empty_flag)

    def get_file_status(self, path):
        return self.get_path_status(path, probes.ALL)

    def exists(self, path, probe_set=probes.ALL):
        try:
            self.get_path_status(path, probe_set)
        except FileNotFoundError:
            return False
        return True

    def is_directory(self, path):
        try:
            return self.get_path_status(path, probes.DIRECTORIES).is_directory()
        except FileNotFoundError:
            logger.debug("is_directory: %s not found or it is a file", path)
            return False

    def is_file(self, path):
        try:
            return self.get_path_status(path, probes.FILE).is_file()
        except FileNotFoundError:
            logger.debug("is_file: %s not found or it is a directory", path)
            return False

    # -- Listing --

    def list_status(self, path, path_filter=None):
        return list(self.list_status_iter(path, path_filter))

    def list_status_iter(self, path, path_filter=None, resolve_directories=False):
        status = self.get_file_status(path)
        if status.is_file():
            return iter([status])
        logger.debug("Listing directory %s", status.path)
        return ListingIterator(
            self._store,
            status.path,
            max_keys=self._max_paging_keys,
            path_filter=path_filter,
            acceptor=accept_all_but_self(status.path),
            resolve_directory=self.get_file_status if resolve_directories else None,
        )

    def list_files(self, path, recursive=False):
        status = self.get_file_status(path)
        if status.is_file():
            return iter([status])
        return ListingIterator(
            self._store,
            status.path,
            max_keys=self._max_paging_keys,
            acceptor=accept_files_only(status.path),
            recursive=recursive,
        )

    def get_content_summary(self, path):
        status = self.get_file_status(path)
        if status.is_file():
            return ContentSummary(status.length, 1, 0)
        dir_key = paths.maybe_add_trailing_slash(paths.path_to_key(status.path))
        directories = {dir_key}
        length = file_count = 0
        for page in self._iter_pages(dir_key):
            for summary in page.object_summaries:
                key = summary.key
                if key.endswith(paths.SEPARATOR):
                    directories.add(key)
                    end = len(key) - 1
                else:
                    file_count += 1
                    length += summary.size
                    end = len(key)
                # directories implied by the key without a marker of their own
                idx = key.rfind(paths.SEPARATOR, 0, end)
                while idx >= len(dir_key):
                    directories.add(key[: idx + 1])
                    idx = key.rfind(paths.SEPARATOR, 0, idx)
        return ContentSummary(length, file_count, len(directories))

    def _iter_pages(self, prefix, delimiter=None):
        token = None
        while True:
            page = self._store.list_objects(
                prefix=prefix,
                delimiter=delimiter,
                max_keys=self._max_paging_keys,
                continuation_token=token,
            )
            yield page
            if not page.is_truncated or not page.continuation_token:
                return
            token = page.continuation_token

    # -- Reading and writing --

    def open(self, path, buffer_size=io.DEFAULT_BUFFER_SIZE):
        status = self.get_path_status(path, probes.FILE)
        raw = S3InputStream(
            self._store, paths.path_to_key(status.path), status.length
        )
        return io.BufferedReader(raw, buffer_size)

    def create(self, path, overwrite=False, buffer_size=io.DEFAULT_BUFFER_SIZE):
        qualified = self.qualify(path)
        try:
            status = self.get_path_status(
                qualified, probes.DIRECTORIES if overwrite else probes.ALL
            )
        except FileNotFoundError:
            pass
        else:
            if status.is_directory():
                raise FileExistsError(f"{qualified} is a directory")
            if not overwrite:
                raise FileExistsError(f"{qualified} already exists")
            logger.debug("Overwriting file %s", qualified)
        raw = S3OutputStream(
            self._store, paths.path_to_key(qualified), self._upload_part_size
        )
        return io.BufferedWriter(raw, buffer_size)

    def create_non_recursive(
        self, path, overwrite=False, buffer_size=io.DEFAULT_BUFFER_SIZE
    ):
        qualified = self.qualify(path)
        parent = paths.parent(qualified)
        # raises FileNotFoundError when there is no parent
        if parent is not None and not self.get_file_status(parent).is_directory():
            raise FileExistsError(f"Not a directory: {parent}")
        return self.create(qualified, overwrite, buffer_size)

    def append(self, path, buffer_size=io.DEFAULT_BUFFER_SIZE):
        raise io.UnsupportedOperation("Append is not supported!")

    # -- Directories --

    def mkdirs(self, path):
        qualified = self.qualify(path)
        try:
            status = self.get_file_status(qualified)
        except FileNotFoundError:
            self._validate_path(qualified)
            self._mkdir(paths.path_to_key(qualified))
            return True
        if status.is_directory():
            return True
        raise FileExistsError(f"Path is a file: {qualified}")

    def _validate_path(self, qualified):
        """Fail if the nearest existing ancestor is a file."""
        for ancestor in paths.ancestors(qualified):
            try:
                status = self.get_file_status(ancestor)
            except FileNotFoundError:
                continue
            if status.is_directory():
                return
            raise FileExistsError(
                f"Can't make directory for path '{ancestor}', it is a file."
            )

    def _mkdir(self, key):
        if key:
            self._store.store_empty_file(paths.maybe_add_trailing_slash(key))

    def create_fake_directory_if_necessary(self, path):
        """Keep a directory visible after its last child went away."""
        if path is None or paths.is_root(path):
            logger.debug("Not creating fake directory for root")
            return
        if not self._put_if_not_exist and self.exists(path, probes.DIRECTORIES):
            return
        # a path is never both a file and a directory marker
        if self.exists(path, probes.FILE):
            logger.warning("Not creating fake directory at %s, it is a file", path)
            return
        dir_key = paths.maybe_add_trailing_slash(paths.path_to_key(path))
        if self._put_if_not_exist:
            logger.debug("Creating fake directory at %s if absent", path)
            self._store.store_empty_file_if_absent(dir_key)
        else:
            logger.debug("Creating fake directory at %s", path)
            self._store.store_empty_file(dir_key)

    # -- Delete --

    def delete(self, path, recursive=False):
        try:
            status = self.get_path_status(path, probes.ALL, need_empty_flag=True)
        except FileNotFoundError:
            logger.debug("Couldn't delete %s - does not exist", path)
            return False
        return self._inner_delete(status, recursive)

    def _inner_delete(self, status, recursive):
        path = status.path
        if paths.is_root(path):
            return self._reject_root_directory_delete(recursive)

        key = paths.path_to_key(path)
        if status.is_directory():
            if not recursive:
                if status.empty_flag is not EmptyFlag.EMPTY:
                    raise DirectoryNotEmptyError(
                        errno.ENOTEMPTY,
                        "Cannot remove directory, it is not empty",
                        path,
                    )
                self._store.delete_object(paths.maybe_add_trailing_slash(key))
            else:
                self._delete_dirs(key)
        else:
            self._store.delete_object(key)

        self.create_fake_directory_if_necessary(paths.parent(path))
        return True

    def _reject_root_directory_delete(self, recursive):
        """The bucket itself is never removed.

        An empty root, or a recursive request, reports success without
        touching the store; a plain delete of a non-empty root is refused.
        """
        logger.info(
            "Delete of the root directory of %s requested, recursive=%s",
            self.bucket_name,
            recursive,
        )
        if self._is_root_empty() or recursive:
            return True
        raise RootDirectoryError(errno.EPERM, "Cannot delete root path", self.uri)

    def _is_root_empty(self):
        return len(self._store.list_objects(prefix="", max_keys=1)) == 0

    def _delete_dirs(self, key):
        dir_key = paths.maybe_add_trailing_slash(key)
        deleted = 0
        for page in self._iter_pages(dir_key):
            keys = [summary.key for summary in page.object_summaries]
            if keys:
                self._store.delete_objects(keys)
                deleted += len(keys)
        logger.info("Deleted %d objects under %s", deleted, dir_key)

    # -- Rename --

    def rename(self, src, dst):
        src = self.qualify(src)
        dst = self.qualify(dst)
        if paths.is_root(src):
            logger.debug("Cannot rename the root of a filesystem")
            return False
        if paths.is_descendant(dst, src):
            logger.debug("Cannot rename %s to its own subdirectory %s", src, dst)
            return False

        src_status = self.get_file_status(src)
        try:
            dst_status = self.get_file_status(dst)
        except FileNotFoundError:
            dst_status = None

        if dst_status is None:
            dst_parent = paths.parent(dst)
            # raises FileNotFoundError when the parent is missing
            if not self.get_file_status(dst_parent).is_directory():
                raise NotADirectoryError(
                    f"Failed to rename {src} to {dst}, {dst_parent} is a file"
                )
        elif src_status.path == dst_status.path:
            return not src_status.is_directory()
        elif dst_status.is_directory():
            dst = paths.join(dst, paths.basename(src))
            if dst == src:
                return not src_status.is_directory()
            try:
                existing = self.get_path_status(dst, probes.ALL, need_empty_flag=True)
            except FileNotFoundError:
                existing = None
            if existing is not None and (
                existing.empty_flag is not EmptyFlag.EMPTY or src_status.is_file()
            ):
                raise FileExistsError(
                    f"Failed to rename {src} to {dst}, "
                    "file already exists or not empty!"
                )
        else:
            raise FileExistsError(
                f"Failed to rename {src} to {dst}, file already exists!"
            )

        if src_status.is_directory():
            succeeded = self._copy_directory(src, dst)
        else:
            succeeded = self._copy_file(src, src_status.length, dst)
        if not succeeded:
            logger.warning("Rename of %s to %s failed, source kept", src, dst)
            return False
        return self.delete(src, recursive=True)

    def _copy_file(self, src, length, dst):
        self._store.copy_object(
            paths.path_to_key(src), paths.path_to_key(dst), size=length
        )
        return True

    def _copy_directory(self, src, dst):
        """Copy every key under ``src`` to ``dst`` on the copy pool.

        Returns False if any single copy failed; the copies already in
        flight are still waited for.
        """
        src_key = paths.maybe_add_trailing_slash(paths.path_to_key(src))
        dst_key = paths.maybe_add_trailing_slash(paths.path_to_key(dst))
        if dst_key.startswith(src_key):
            logger.debug("Cannot rename a directory to a subdirectory of self")
            return False

        self._store.store_empty_file(dst_key)
        context = CopyFileContext()
        executor = SemaphoredExecutor(
            self._copy_pool, self._max_concurrent_copy_tasks_per_dir
        )
        copies_to_finish = 0
        for page in self._iter_pages(src_key):
            for summary in page.object_summaries:
                new_key = dst_key + summary.key[len(src_key) :]
                executor.submit(
                    CopyFileTask(
                        self._store, summary.key, summary.size, new_key, context
                    )
                )
                copies_to_finish += 1
                if context.is_copy_failure():
                    break
            if context.is_copy_failure():
                break

        try:
            with context:
                context.await_all_finish(copies_to_finish)
        except KeyboardInterrupt:
            logger.warning(
                "Interrupted while waiting for copies of %s to finish", src
            )
            with context:
                context.set_copy_failure()
            raise
        logger.debug(
            "Copied %d objects from %s to %s, failure=%s",
            copies_to_finish,
            src_key,
            dst_key,
            context.is_copy_failure(),
        )
        return not context.is_copy_failure()
