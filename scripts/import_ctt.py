"""CLI entry point for the CTT postal-code import.

Usage:
    python -m scripts.import_ctt --db-url sqlite:///ctt.db [--path todos_cp] [--force]
        [--batch-size 5000] [--chunk-size 1000] [--cache-size 10000]
        [--memory-limit 256] [--schema simplified|extended]

--db-url and --path fall back to the CTT_DB_URL and CTT_DATA_PATH environment variables.
"""

import argparse
import logging
import os
import resource
import sys

from cttdb import StorageError, create_service
from cttimport.config import DEFAULT_DATA_DIR, SCHEMAS, ImportConfig
from cttimport.errors import CttImportError
from cttimport.pipeline import CttImporter

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Import CTT postal-code data into the database")
    parser.add_argument(
        "--db-url",
        default=os.environ.get("CTT_DB_URL"),
        help="Database URL (sqlite:/// or postgresql://); defaults to $CTT_DB_URL",
    )
    parser.add_argument(
        "--path",
        default=os.environ.get("CTT_DATA_PATH", DEFAULT_DATA_DIR),
        help="Directory holding distritos.txt, concelhos.txt and todos_cp.txt",
    )
    parser.add_argument(
        "--force", action="store_true", help="Empty the address tables before importing"
    )
    parser.add_argument("--batch-size", type=int, default=5000, help="Postal codes per transaction")
    parser.add_argument("--chunk-size", type=int, default=1000, help="Rows per INSERT statement")
    parser.add_argument(
        "--cache-size", type=int, default=10000, help="Locality keys kept for deduplication"
    )
    parser.add_argument(
        "--memory-limit", type=int, default=None, help="Address-space ceiling in MB"
    )
    parser.add_argument("--schema", choices=SCHEMAS, default="simplified", help="Table layout")
    return parser.parse_args(argv)


def apply_memory_limit(limit_mb: int) -> None:
    limit = limit_mb * 1024 * 1024
    _, hard = resource.getrlimit(resource.RLIMIT_AS)
    if hard != resource.RLIM_INFINITY:
        limit = min(limit, hard)
    resource.setrlimit(resource.RLIMIT_AS, (limit, hard))
    logger.info("Memory limit set to %d MB", limit // (1024 * 1024))


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    if not args.db_url:
        logger.error("No database URL. Pass --db-url or set CTT_DB_URL.")
        sys.exit(1)

    try:
        config = ImportConfig(
            data_dir=args.path,
            batch_size=args.batch_size,
            chunk_size=args.chunk_size,
            cache_size=args.cache_size,
            force=args.force,
            schema=args.schema,
            memory_limit_mb=args.memory_limit,
        )
    except CttImportError as e:
        logger.error("%s", e)
        sys.exit(1)

    if config.memory_limit_mb:
        apply_memory_limit(config.memory_limit_mb)

    service = create_service(args.db_url)
    service.connect()
    try:
        CttImporter(service, config).run()
        logger.info("Done.")
    except (CttImportError, StorageError, OSError) as e:
        logger.error("Import aborted: %s", e)
        sys.exit(1)
    finally:
        service.close()


if __name__ == "__main__":
    main()
