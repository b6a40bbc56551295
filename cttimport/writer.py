"""Chunked, transactional insert-or-ignore writes."""

import logging
from typing import Iterable, Iterator, Mapping

from cttdb import DatabaseService, StorageError
from cttimport.schema import TableSpec

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1000

StagedTable = tuple[TableSpec, Mapping[tuple, tuple]]


def chunked(rows: list[tuple], size: int) -> Iterator[list[tuple]]:
    for start in range(0, len(rows), size):
        yield rows[start : start + size]


class BatchWriter:
    """Writes staged rows, keyed by natural key, one transaction per batch.

    A batch may span several tables; they are written in the order given,
    so parents must come before children. A storage failure rolls the whole
    batch back, is logged and counted, and does not stop the import.
    """

    def __init__(self, service: DatabaseService, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self._service = service
        self._chunk_size = chunk_size
        self.failed_batches = 0

    def write(self, staged: Iterable[StagedTable]) -> dict[str, int] | None:
        """Insert-or-ignore every staged map; return rows attempted per table.

        Returns None when the batch was rolled back, so callers can undo any
        bookkeeping done for the rows it carried.
        """
        staged = [(spec, rows) for spec, rows in staged if rows]
        if not staged:
            return {}

        counts: dict[str, int] = {}
        try:
            with self._service.transaction():
                for spec, rows in staged:
                    values = list(rows.values())
                    for chunk in chunked(values, self._chunk_size):
                        self._service.insert_ignore(spec.name, spec.columns, chunk)
                    counts[spec.name] = len(values)
        except StorageError as e:
            self.failed_batches += 1
            tables = ", ".join(spec.name for spec, _ in staged)
            logger.warning("Batch write to %s failed and was rolled back: %s", tables, e)
            return None

        logger.debug("Batch written: %s", counts)
        return counts
