"""Run counters and the end-of-import summary."""

import resource
import sys
from collections import Counter
from dataclasses import dataclass, field

from cttimport.schema import DISTRICTS, LOCALITIES, MUNICIPALITIES, PARISHES, POSTAL_CODES

SUMMARY_TABLES = [
    (DISTRICTS.name, "Distritos"),
    (MUNICIPALITIES.name, "Concelhos"),
    (PARISHES.name, "Freguesias"),
    (LOCALITIES.name, "Localidades"),
    (POSTAL_CODES.name, "Códigos Postais"),
]


def peak_memory_kb() -> int:
    """Peak resident set size of this process in KiB."""
    peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # macOS reports bytes, Linux reports kilobytes.
    return peak // 1024 if sys.platform == "darwin" else peak


@dataclass
class ImportStats:
    """Counters for one import run.

    ``imported`` counts rows sent to the database per table, not rows that
    ended up inserted: duplicates are ignored by the database silently.
    Malformed lines only show up in ``lines_read`` and ``malformed``.
    """

    imported: Counter = field(default_factory=Counter)
    skipped: Counter = field(default_factory=Counter)
    lines_read: int = 0
    malformed: int = 0
    failed_batches: int = 0
    backfilled: int = 0
    duration: float = 0.0
    peak_memory_kb: int = 0

    def add_written(self, counts: dict[str, int]) -> None:
        self.imported.update(counts)

    def format_summary(self) -> str:
        rows = [
            (label, f"{self.imported[table]:,}")
            for table, label in SUMMARY_TABLES
            if table != PARISHES.name or self.imported[table]
        ]
        width = max(len(label) for label, _ in rows + [("Tabela", "")])
        count_width = max(len(count) for _, count in rows + [("", "Registos")])
        rule = f"+-{'-' * width}-+-{'-' * count_width}-+"

        lines = [rule, f"| {'Tabela':<{width}} | {'Registos':>{count_width}} |", rule]
        lines += [f"| {label:<{width}} | {count:>{count_width}} |" for label, count in rows]
        lines.append(rule)
        if self.skipped:
            skipped = ", ".join(f"{stage}={n:,}" for stage, n in sorted(self.skipped.items()))
            lines.append(f"Skipped (unknown parent): {skipped}")
        if self.failed_batches:
            lines.append(f"Failed batches: {self.failed_batches}")
        lines.append(f"Localities linked: {self.backfilled:,}")
        lines.append(f"Duration: {self.duration:.2f}s")
        lines.append(f"Peak memory: {self.peak_memory_kb / 1024:.2f} MB")
        return "\n".join(lines)
