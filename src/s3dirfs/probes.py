"""Store queries the status resolver may issue for a path.

HEAD on the key itself is the cheapest probe and finds files. HEAD on
``key/`` finds directories that carry a marker. LIST under ``key/`` finds
directories that exist only because something lives below them, and is the
only probe that can tell whether a directory is empty.
"""

import enum


class StatusProbe(enum.Flag):
    NONE = 0
    HEAD = 1
    DIR_MARKER = 2
    LIST = 4


NONE = StatusProbe.NONE

#: Look for files and directories.
ALL = StatusProbe.HEAD | StatusProbe.DIR_MARKER | StatusProbe.LIST

HEAD_ONLY = StatusProbe.HEAD

LIST_ONLY = StatusProbe.LIST

#: Look for files.
FILE = HEAD_ONLY

#: Look for directories. The marker HEAD goes first since LIST costs more.
DIRECTORIES = StatusProbe.DIR_MARKER | StatusProbe.LIST


def check_probes(probes, need_empty_flag):
    """Emptiness can only be decided by a LIST."""
    if need_empty_flag and StatusProbe.LIST not in probes:
        raise ValueError(
            f"need_empty_flag is set but probes {probes!r} do not include LIST"
        )
