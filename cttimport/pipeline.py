"""Import orchestration: parents, then the combined locality/postal-code pass, then the back-fill.

Each batch commits on its own. If the run dies halfway, the committed
batches stay and a re-run picks up where it left off by ignoring rows that
already exist.
"""

import logging
import time
from enum import Enum
from pathlib import Path
from typing import Callable

from cttdb import DatabaseService
from cttimport.cache import ReferenceCache
from cttimport.config import ImportConfig
from cttimport.errors import ConfigurationError, MalformedRecord, ReferentialGap
from cttimport.reader import read_lines
from cttimport.records import (
    PostalCodeLine,
    parse_district,
    parse_municipality,
    parse_parish,
    parse_postal_code_line,
)
from cttimport.schema import (
    BACKFILL_LOCALITY_SQL,
    DISTRICTS,
    LOCALITIES,
    MUNICIPALITIES,
    PARISHES,
    POSTAL_CODES,
    TableSpec,
    ensure_schema,
    truncation_order,
)
from cttimport.stats import ImportStats, peak_memory_kb
from cttimport.writer import BatchWriter

logger = logging.getLogger(__name__)

DISTRICTS_FILE = "distritos.txt"
MUNICIPALITIES_FILE = "concelhos.txt"
PARISHES_FILE = "freguesias.txt"
POSTAL_CODES_FILE = "todos_cp.txt"


class PipelineState(Enum):
    IDLE = "idle"
    CLEANING = "cleaning"
    LOADING_PARENTS = "loading_parents"
    LOADING_CHILDREN = "loading_children"
    BACKFILLING = "backfilling"
    DONE = "done"
    FAILED = "failed"


class CttImporter:
    """Loads the CTT files in hierarchy order into the address tables.

    The reference cache and the batch writer are owned by the importer; pass
    them in to control capacity or observe them from tests.
    """

    def __init__(
        self,
        service: DatabaseService,
        config: ImportConfig,
        cache: ReferenceCache | None = None,
        writer: BatchWriter | None = None,
    ):
        self._service = service
        self._config = config
        self.cache = cache or ReferenceCache(config.cache_size)
        self.writer = writer or BatchWriter(service, config.chunk_size)
        self.stats = ImportStats()
        self.state = PipelineState.IDLE

    def _enter(self, state: PipelineState) -> None:
        logger.debug("Import state: %s -> %s", self.state.value, state.value)
        self.state = state

    def _source(self, file_name: str) -> Path:
        return self._config.data_dir / file_name

    def run(self) -> ImportStats:
        """Run the whole import and return its counters.

        Any exception moves the importer to FAILED and is re-raised.
        """
        started = time.perf_counter()
        try:
            if not self._config.data_dir.is_dir():
                raise ConfigurationError(f"Data directory not found: {self._config.data_dir}")
            logger.info(
                "Importing CTT data from %s (schema=%s, batch size=%d)",
                self._config.data_dir,
                self._config.schema,
                self._config.batch_size,
            )
            ensure_schema(self._service, self._config.extended)

            if self._config.force:
                self._enter(PipelineState.CLEANING)
                self._clean()

            self._enter(PipelineState.LOADING_PARENTS)
            self._load_districts()
            self._load_municipalities()
            if self._config.extended:
                self._load_parishes()

            self._enter(PipelineState.LOADING_CHILDREN)
            self._load_postal_codes()

            self._enter(PipelineState.BACKFILLING)
            self._backfill_localities()

            self._enter(PipelineState.DONE)
        except Exception:
            failed_in = self.state
            self._enter(PipelineState.FAILED)
            logger.error("Import failed while %s", failed_in.value.replace("_", " "))
            raise
        finally:
            self.stats.failed_batches = self.writer.failed_batches
            self.stats.duration = time.perf_counter() - started
            self.stats.peak_memory_kb = peak_memory_kb()

        logger.info("Import complete:\n%s", self.stats.format_summary())
        return self.stats

    def _clean(self) -> None:
        # A database last loaded with the extended layout still has freguesias
        # pointing at concelhos; it has to be emptied too.
        extended = self._config.extended or self._service.table_exists(PARISHES.name)
        tables = truncation_order(extended)
        logger.warning("Force mode: emptying %s", ", ".join(tables))
        self._service.truncate_tables(tables)

    def _write(self, staged: list[tuple[TableSpec, dict]]) -> bool:
        """Write one batch; False if it was rolled back."""
        counts = self.writer.write(staged)
        if counts is None:
            return False
        self.stats.add_written(counts)
        return True

    def _write_parents(self, spec: TableSpec, staged: dict, added: list, forget: Callable) -> None:
        if self._write([(spec, staged)]):
            return
        for record in added:
            forget(record)
        if added:
            logger.warning(
                "Dropped %d %s from the cache after a failed batch", len(added), spec.name
            )

    def _write_postal_batch(self, localities: dict, postal_codes: dict) -> None:
        # Localities of a rolled-back batch must be staged again by the next
        # line that carries them, or they never reach the table.
        if not self._write([(LOCALITIES, localities), (POSTAL_CODES, postal_codes)]):
            self.cache.forget_localities(localities.keys())

    def _load_parents(
        self,
        file_name: str,
        spec: TableSpec,
        parse: Callable,
        register: Callable,
        forget: Callable,
    ) -> None:
        """Stream one parent file into its table, registering each record in the cache.

        Records first registered by a batch that fails are forgotten again, so
        their children are skipped as referential gaps instead of failing
        every later batch on the foreign key.
        """
        logger.info("Importing %s from %s", spec.name, file_name)
        staged: dict[tuple, tuple] = {}
        added: list[tuple] = []
        for line in read_lines(self._source(file_name), self._config.encoding):
            self.stats.lines_read += 1
            try:
                record = parse(line)
            except MalformedRecord:
                self.stats.malformed += 1
                continue
            try:
                is_new = register(record)
            except ReferentialGap as e:
                self.stats.skipped[spec.name] += 1
                logger.warning("Skipping %s %s: %s", spec.name, "/".join(record.key), e)
                continue

            if is_new:
                added.append(record)
            staged.setdefault(record.key, record)
            if len(staged) >= self._config.batch_size:
                self._write_parents(spec, staged, added, forget)
                staged = {}
                added = []

        self._write_parents(spec, staged, added, forget)
        logger.info("%s: %d rows", spec.name, self.stats.imported[spec.name])

    def _load_districts(self) -> None:
        self._load_parents(
            DISTRICTS_FILE,
            DISTRICTS,
            parse_district,
            self.cache.add_district,
            self.cache.forget_district,
        )

    def _load_municipalities(self) -> None:
        self._load_parents(
            MUNICIPALITIES_FILE,
            MUNICIPALITIES,
            parse_municipality,
            self.cache.add_municipality,
            self.cache.forget_municipality,
        )

    def _load_parishes(self) -> None:
        if not self._source(PARISHES_FILE).is_file():
            logger.info("No %s in %s; parishes not loaded", PARISHES_FILE, self._config.data_dir)
            return
        self._load_parents(
            PARISHES_FILE, PARISHES, parse_parish, self.cache.add_parish, self.cache.forget_parish
        )

    def _postal_code_key(self, entry: PostalCodeLine) -> tuple:
        if self._config.extended:
            return (entry.cp4, entry.cp3, entry.postal_designation, entry.address or "")
        return (entry.cp4, entry.cp3)

    def _load_postal_codes(self) -> None:
        """Single pass over todos_cp.txt staging localities and postal codes together."""
        logger.info("Importing localities and postal codes from %s", POSTAL_CODES_FILE)
        localities: dict[tuple, tuple] = {}
        postal_codes: dict[tuple, tuple] = {}
        batches = 0
        lines = 0

        for line in read_lines(self._source(POSTAL_CODES_FILE), self._config.encoding):
            self.stats.lines_read += 1
            lines += 1
            if lines % self._config.progress_every == 0:
                logger.info(
                    "Processed %d lines (%d batches written, %d localities cached)",
                    lines,
                    batches,
                    self.cache.stats()["localities"],
                )

            try:
                entry = parse_postal_code_line(line)
            except MalformedRecord:
                self.stats.malformed += 1
                continue
            try:
                district_name = self.cache.district_name(entry.district_code)
                municipality_name = self.cache.municipality_name(*entry.municipality_key)
            except ReferentialGap as e:
                self.stats.skipped[POSTAL_CODES.name] += 1
                logger.warning("Skipping postal code %s-%s: %s", entry.cp4, entry.cp3, e)
                continue

            locality = entry.locality
            if self.cache.mark_locality(locality.key):
                localities.setdefault(locality.key, locality)

            postal_codes.setdefault(
                self._postal_code_key(entry),
                (
                    entry.cp4,
                    entry.cp3,
                    entry.district_code,
                    entry.municipality_code,
                    entry.locality_code,
                    entry.postal_designation,
                    district_name,
                    municipality_name,
                    entry.locality_name,
                    entry.street_code,
                    entry.address,
                ),
            )

            if len(postal_codes) >= self._config.batch_size:
                self._write_postal_batch(localities, postal_codes)
                batches += 1
                localities = {}
                postal_codes = {}

        self._write_postal_batch(localities, postal_codes)
        logger.info(
            "%s: %d rows, %s: %d rows (%d lines)",
            LOCALITIES.name,
            self.stats.imported[LOCALITIES.name],
            POSTAL_CODES.name,
            self.stats.imported[POSTAL_CODES.name],
            lines,
        )

    def _backfill_localities(self) -> None:
        logger.info("Linking postal codes to localities")
        with self._service.transaction():
            self.stats.backfilled = self._service.execute_update(BACKFILL_LOCALITY_SQL)
        logger.info("Linked %d postal codes to their locality", self.stats.backfilled)
