import enum


class EmptyFlag(enum.Enum):
    """Whether a directory is known to hold anything besides its marker."""

    EMPTY = "empty"
    NOT_EMPTY = "not-empty"
    UNKNOWN = "unknown"


class FileStatus:
    """Resolved classification of a path: a file or a directory.

    Absence is never represented by a status; resolution raises
    FileNotFoundError instead.
    """

    def __init__(
        self,
        path,
        is_directory,
        length=0,
        mtime=None,
        empty_flag=EmptyFlag.UNKNOWN,
    ):
        self.path = path
        self.length = length
        self.mtime = mtime
        self._is_directory = is_directory
        self.empty_flag = empty_flag if is_directory else EmptyFlag.UNKNOWN

    @classmethod
    def file(cls, path, length, mtime):
        return cls(path, False, length=length, mtime=mtime)

    @classmethod
    def directory(cls, path, empty_flag=EmptyFlag.UNKNOWN, length=0, mtime=None):
        return cls(path, True, length=length, mtime=mtime, empty_flag=empty_flag)

    def is_directory(self):
        return self._is_directory

    def is_file(self):
        return not self._is_directory

    def __eq__(self, other):
        if not isinstance(other, FileStatus):
            return NotImplemented
        return (
            self.path == other.path
            and self._is_directory == other._is_directory
            and self.length == other.length
        )

    def __hash__(self):
        return hash((self.path, self._is_directory))

    def __repr__(self):
        kind = "dir" if self._is_directory else "file"
        if self._is_directory:
            return f"<FileStatus {kind} {self.path!r} {self.empty_flag.value}>"
        return f"<FileStatus {kind} {self.path!r} length={self.length}>"


class ObjectSummary:
    """One object entry of a LIST page."""

    def __init__(self, key, size, last_modified=None):
        self.key = key
        self.size = size
        self.last_modified = last_modified

    def __repr__(self):
        return f"<ObjectSummary {self.key!r} size={self.size}>"


class ListResult:
    """One page of a LIST call, or several continuation pages merged."""

    def __init__(
        self,
        object_summaries=None,
        common_prefixes=None,
        is_truncated=False,
        continuation_token=None,
    ):
        self.object_summaries = list(object_summaries or [])
        self.common_prefixes = []
        for prefix in common_prefixes or []:
            if prefix not in self.common_prefixes:
                self.common_prefixes.append(prefix)
        self.is_truncated = is_truncated
        self.continuation_token = continuation_token

    def __len__(self):
        return len(self.object_summaries) + len(self.common_prefixes)

    def extend(self, other):
        """Merge a continuation page into this result."""
        self.object_summaries.extend(other.object_summaries)
        for prefix in other.common_prefixes:
            if prefix not in self.common_prefixes:
                self.common_prefixes.append(prefix)
        self.is_truncated = other.is_truncated
        self.continuation_token = other.continuation_token

    def represents_empty_directory(self, dir_key):
        # The directory's own marker is not content.
        return (
            not self.common_prefixes
            and len(self.object_summaries) == 1
            and self.object_summaries[0].key == dir_key
        )

    def __repr__(self):
        return (
            f"<ListResult objects={len(self.object_summaries)} "
            f"prefixes={len(self.common_prefixes)} truncated={self.is_truncated}>"
        )


class ContentSummary:
    """Aggregate size and entry counts of a subtree."""

    def __init__(self, length, file_count, directory_count):
        self.length = length
        self.file_count = file_count
        self.directory_count = directory_count

    def __repr__(self):
        return (
            f"<ContentSummary length={self.length} files={self.file_count} "
            f"directories={self.directory_count}>"
        )
