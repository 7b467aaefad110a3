from zope.interface import Attribute
from zope.interface import Interface


class IObjectStore(Interface):
    """Abstraction over a flat, key-based object store (S3 and friends)."""

    bucket_name = Attribute("Name of the bucket the store operates on")

    def head_object(s3_key):
        """Return a metadata dict for an object, or None if not found.

        The dict carries at least ``ContentLength`` and ``LastModified``.
        """

    def list_objects(prefix="", delimiter=None, max_keys=1000, continuation_token=None):
        """Return one ListResult page of keys starting with ``prefix``."""

    def put_object(s3_key, body=b""):
        """Store ``body`` under the key."""

    def store_empty_file(s3_key):
        """Store a zero-byte object under the key."""

    def store_empty_file_if_absent(s3_key):
        """Store a zero-byte object unless the key exists (server-side check).

        Return True if written.
        """

    def upload_fileobj(fileobj, s3_key):
        """Upload a readable binary file object to the key."""

    def get_object_range(s3_key, start, end):
        """Return the bytes from ``start`` to ``end`` inclusive."""

    def copy_object(src_key, dst_key, size=None):
        """Copy an object inside the store without transferring its data."""

    def delete_object(s3_key):
        """Delete one object. Deleting a missing key is not an error."""

    def delete_objects(s3_keys):
        """Delete many objects in batches, return the deleted keys."""


class IFileSystem(Interface):
    """Hierarchical filesystem view of an object store bucket."""

    uri = Attribute("URI of the filesystem, ``s3://<bucket>``")

    def get_file_status(path):
        """Return the FileStatus of a path or raise FileNotFoundError."""

    def exists(path):
        """Return True if the path is a file or a directory."""

    def is_directory(path):
        """Return True if the path is a directory."""

    def is_file(path):
        """Return True if the path is a file."""

    def list_status(path, path_filter=None):
        """Return the statuses of a directory's children."""

    def list_status_iter(path, path_filter=None):
        """Lazily iterate over the statuses of a directory's children."""

    def list_files(path, recursive=False):
        """Iterate over the files below a path."""

    def get_content_summary(path):
        """Return size and entry counts of a subtree."""

    def create(path, overwrite=False):
        """Open a new file for writing."""

    def create_non_recursive(path, overwrite=False):
        """Open a new file for writing; the parent must already exist."""

    def append(path):
        """Not supported by object stores."""

    def open(path):
        """Open an existing file for reading."""

    def delete(path, recursive=False):
        """Delete a file or directory, return False if it did not exist."""

    def rename(src, dst):
        """Move a file or directory, return True on success."""

    def mkdirs(path):
        """Create a directory and any missing parents."""

    def get_working_directory():
        """Return the directory relative paths are resolved against."""

    def set_working_directory(path):
        """Change the directory relative paths are resolved against."""

    def close():
        """Release worker pools."""
