"""
Schema Capability Detection

Some columns are optional: rows written before they existed don't have
them, and a backend may not have been migrated yet (e.g. expenses.category).

DESIGN DECISION: Detection is an explicit object injected into the storage
backends that need it. Each detector owns its cache, so tests and separate
backends never share hidden process-wide state, and `reset()` forces a
fresh probe.

A detector may also be given a migrator. `ensure()` runs it at most once
per column and re-probes afterwards.
"""

from typing import Callable, Optional

import structlog

Probe = Callable[[str, str], bool]
Migrator = Callable[[str, str], bool]


class SchemaCapabilityDetector:
    """
    Answers "does table X have column Y" and remembers the answer.

    Args:
        probe: Callable (table, column) -> bool doing the actual check.
        migrator: Optional callable (table, column) -> bool that adds the
                  column. Returns True if the migration ran successfully.
    """

    def __init__(
        self,
        probe: Probe,
        migrator: Optional[Migrator] = None,
    ):
        self._probe = probe
        self._migrator = migrator
        self._known: dict[tuple[str, str], bool] = {}
        self._migration_attempted: set[tuple[str, str]] = set()
        self._logger = structlog.get_logger(__name__)

    def has_column(self, table: str, column: str) -> bool:
        key = (table, column)
        if key not in self._known:
            available = bool(self._probe(table, column))
            self._known[key] = available
            self._logger.debug(
                "capability_detected",
                table=table,
                column=column,
                available=available,
            )
        return self._known[key]

    def ensure(self, table: str, column: str) -> bool:
        """
        Make sure a column exists, migrating once if a migrator is set.

        Returns whether the column is available afterwards.
        """
        key = (table, column)
        if self.has_column(table, column):
            return True
        if self._migrator is None or key in self._migration_attempted:
            return False

        self._migration_attempted.add(key)
        migrated = bool(self._migrator(table, column))
        self._logger.info(
            "capability_migration",
            table=table,
            column=column,
            migrated=migrated,
        )
        self._known.pop(key, None)
        return self.has_column(table, column)

    def mark(self, table: str, column: str, available: bool) -> None:
        """Record a known answer without probing."""
        self._known[(table, column)] = available

    def reset(self) -> None:
        self._known.clear()
        self._migration_attempted.clear()

    def snapshot(self) -> dict[str, bool]:
        return {f"{t}.{c}": v for (t, c), v in self._known.items()}


def static_detector(available: dict[tuple[str, str], bool]) -> SchemaCapabilityDetector:
    """Detector answering from a fixed table; unknown columns are absent."""
    return SchemaCapabilityDetector(
        probe=lambda table, column: available.get((table, column), False),
    )
