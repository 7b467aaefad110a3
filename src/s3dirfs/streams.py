import io
import logging
import tempfile


logger = logging.getLogger(__name__)


class S3OutputStream(io.RawIOBase):
    """Write-only stream that uploads its content to a key on close.

    Data is spooled in memory up to ``part_size`` bytes and to a temporary
    file beyond that; the upload itself (multipart for large content) is
    left to the store.
    """

    def __init__(self, store, key, part_size=8 * 1024 * 1024):
        self._store = store
        self.key = key
        self._buffer = tempfile.SpooledTemporaryFile(max_size=part_size)
        self.bytes_written = 0

    def writable(self):
        return True

    def write(self, b):
        if self.closed:
            raise ValueError("I/O operation on closed file.")
        n = self._buffer.write(b)
        self.bytes_written += n
        return n

    def close(self):
        if self.closed:
            return
        try:
            self._buffer.seek(0)
            self._store.upload_fileobj(self._buffer, self.key)
            logger.debug("Uploaded %d bytes to %s", self.bytes_written, self.key)
        finally:
            self._buffer.close()
            super().close()


class S3InputStream(io.RawIOBase):
    """Seekable read-only stream over one object, using ranged GETs."""

    def __init__(self, store, key, length):
        self._store = store
        self.key = key
        self.length = length
        self._pos = 0

    def readable(self):
        return True

    def seekable(self):
        return True

    def tell(self):
        return self._pos

    def seek(self, offset, whence=io.SEEK_SET):
        if whence == io.SEEK_SET:
            pos = offset
        elif whence == io.SEEK_CUR:
            pos = self._pos + offset
        elif whence == io.SEEK_END:
            pos = self.length + offset
        else:
            raise ValueError(f"invalid whence ({whence})")
        if pos < 0:
            raise ValueError(f"negative seek position {pos}")
        self._pos = pos
        return pos

    def readinto(self, b):
        if self.closed:
            raise ValueError("I/O operation on closed file.")
        remaining = self.length - self._pos
        if remaining <= 0 or not len(b):
            return 0
        n = min(len(b), remaining)
        data = self._store.get_object_range(self.key, self._pos, self._pos + n - 1)
        got = len(data)
        b[:got] = data
        self._pos += got
        return got
