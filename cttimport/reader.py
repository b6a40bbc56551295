"""Streaming reader for the single-byte encoded CTT text files."""

import logging
from pathlib import Path
from typing import IO, Iterator

from cttimport.errors import MissingSourceFile

logger = logging.getLogger(__name__)

SOURCE_ENCODING = "iso-8859-1"


def read_lines(file_path: str | Path, encoding: str = SOURCE_ENCODING) -> Iterator[str]:
    """Return a lazy iterator of stripped, non-empty lines decoded from ``encoding``.

    The file is opened right away, so a missing file fails here with
    MissingSourceFile and any other OSError from opening it (permissions,
    a directory in its place) propagates from this call. Lines are then read
    one at a time as the iterator is consumed; the file is closed when it is
    exhausted or closed.
    """
    path = Path(file_path)
    if not path.is_file():
        raise MissingSourceFile(path)
    f = path.open(encoding=encoding)
    logger.debug("Reading %s as %s", path, encoding)
    return _iter_lines(f)


def _iter_lines(f: IO[str]) -> Iterator[str]:
    with f:
        for line in f:
            line = line.strip()
            if line:
                yield line
