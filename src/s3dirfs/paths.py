"""Path arithmetic for the filesystem view.

Paths are plain strings. A qualified path is absolute and normalised
(``/a/b``, root is ``/``); its key is the path without the leading
separator.
"""

from urllib.parse import urlsplit

import posixpath


SEPARATOR = "/"
ROOT = "/"
SCHEMES = ("s3", "s3a")


def qualify(path, working_dir=ROOT, bucket=None):
    """Turn an absolute, relative or ``s3://`` path into a qualified path."""
    if not isinstance(path, str):
        raise TypeError(f"path must be a str, got {type(path).__name__}")
    if "://" in path:
        parts = urlsplit(path)
        if parts.scheme not in SCHEMES:
            raise ValueError(f"Unsupported scheme in {path!r}")
        if bucket is not None and parts.netloc != bucket:
            raise ValueError(f"Wrong bucket in {path!r}, expected {bucket!r}")
        path = parts.path or ROOT
    if not path.startswith(SEPARATOR):
        path = posixpath.join(working_dir or ROOT, path)
    path = posixpath.normpath(path)
    # normpath keeps a leading '//' on POSIX
    return SEPARATOR + path.lstrip(SEPARATOR)


def is_root(path):
    return path == ROOT


def path_to_key(qualified_path):
    return qualified_path[1:]


def key_to_path(key):
    return qualify(SEPARATOR + key)


def maybe_add_trailing_slash(key):
    if key and not key.endswith(SEPARATOR):
        return key + SEPARATOR
    return key


def parent(qualified_path):
    """Return the parent path, None for root."""
    if is_root(qualified_path):
        return None
    return posixpath.dirname(qualified_path)


def basename(qualified_path):
    return posixpath.basename(qualified_path)


def join(qualified_path, name):
    return qualify(posixpath.join(qualified_path, name))


def ancestors(qualified_path):
    """Yield parent, grandparent, ... up to and including root."""
    current = parent(qualified_path)
    while current is not None:
        yield current
        current = parent(current)


def is_descendant(path, ancestor):
    return ancestor in ancestors(path)
