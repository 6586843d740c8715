"""Transaction coordinator: validate-all, backup-all, execute-all, rollback.

One coordinator owns the pending ledger and the backup map for exactly
one transaction; construct a fresh one per Solution. Operations run
strictly in input order. There is no internal locking, so callers must
not run two transactions against the same working tree at once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from issuesolver.apply.backup import BackupHandle, BackupStore
from issuesolver.apply.errors import BackupError, ExecutionError, TransactionValidationError
from issuesolver.apply.executor import MutationExecutor, ResolvedAction, resolve_action
from issuesolver.apply.validator import FileValidator
from issuesolver.schemas.config import SafetyPolicy
from issuesolver.schemas.solution import ActionKind, DryRunEntry, ExecutionRecord, FileAction

logger = logging.getLogger(__name__)


@dataclass
class _LedgerEntry:
    """Pre-execution state of one operation, kept for undo."""

    operation: FileAction
    target: Path
    resolved: ResolvedAction
    existed: bool
    created_dirs: list[Path] = field(default_factory=list)


class TransactionCoordinator:
    """Applies a list of FileActions all-or-nothing.

    Flow:
    1. Validate every operation; abort with every failure listed
    2. Back up every target that exists and will be modified or deleted
    3. Execute in input order, recording each success in the ledger
    4. On the first failure, undo the in-flight operation and the ledger
       in reverse, then re-raise the original error
    5. On success, discard backups unless the policy keeps them
    """

    def __init__(
        self,
        root: Path,
        policy: SafetyPolicy | None = None,
        *,
        validator: FileValidator | None = None,
        executor: MutationExecutor | None = None,
        store: BackupStore | None = None,
    ) -> None:
        self._root = Path(root).resolve()
        self._policy = policy or SafetyPolicy()
        self._validator = validator or FileValidator(self._root, self._policy)
        self._executor = executor or MutationExecutor(
            self._root, coerce_actions=self._policy.coerce_actions,
        )
        self._store = store or BackupStore(self._root)
        self._pending: list[_LedgerEntry] = []
        self._backups: dict[Path, BackupHandle] = {}
        self._unprotected: set[Path] = set()
        self._used = False

    @property
    def pending(self) -> list[FileAction]:
        """Operations applied so far in the running transaction."""
        return [entry.operation for entry in self._pending]

    @property
    def backups(self) -> dict[Path, BackupHandle]:
        return dict(self._backups)

    def validate_all(self, operations: list[FileAction]) -> list[tuple[str, str]]:
        """Validate every operation without short-circuiting.

        Returns:
            (path, reason) for each rejected operation.
        """
        failures: list[tuple[str, str]] = []
        for operation in operations:
            result = self._validator.validate(operation)
            if not result.valid:
                failures.append((operation.path, result.reason))
        return failures

    def run(self, operations: list[FileAction]) -> list[ExecutionRecord]:
        """Apply all operations or none.

        Returns:
            One ExecutionRecord per operation, in input order.

        Raises:
            TransactionValidationError: If any operation is invalid. Nothing
                is written.
            ExecutionError: If an operation fails mid-apply. Everything
                already applied has been rolled back.
        """
        self._claim()

        failures = self.validate_all(operations)
        if failures:
            for path, reason in failures:
                logger.error("Rejected %s: %s", path, reason)
            raise TransactionValidationError(failures)

        self._backup_all(operations)

        records: list[ExecutionRecord] = []
        in_flight: _LedgerEntry | None = None
        try:
            for operation in operations:
                in_flight = self._prepare(operation)
                records.append(self._executor.apply(operation))
                self._pending.append(in_flight)
                in_flight = None
        except Exception as e:
            logger.error("File operation failed: %s", e)
            rollback_failures = self._rollback(in_flight)
            if isinstance(e, ExecutionError):
                e.rollback_failures = rollback_failures
            raise

        self._pending.clear()
        if self._policy.keep_backups:
            logger.info("Keeping %d backup(s) in %s", len(self._backups), self._store.directory)
        else:
            self._store.cleanup(list(self._backups.values()))
        return records

    def dry_run(self, operations: list[FileAction]) -> list[DryRunEntry]:
        """Report what run() would do. Never touches the filesystem."""
        self._claim()
        entries: list[DryRunEntry] = []
        for operation in operations:
            result = self._validator.validate(operation)
            exists = False
            size: int | None = None
            if self._validator.check_path(operation.path).valid:
                target = self._executor.target(operation.path)
                exists = target.exists()
                if target.is_file():
                    size = target.stat().st_size
            resolved = resolve_action(operation, exists, coerce=self._policy.coerce_actions)
            entries.append(DryRunEntry(
                path=operation.path,
                requested=operation.action,
                would_apply=resolved.kind,
                valid=result.valid,
                reason=result.reason,
                current_size=size,
            ))
            logger.info(
                "[dry-run] %s %s: %s%s",
                "OK" if result.valid else "REJECTED",
                resolved.kind, operation.path,
                f" ({result.reason})" if not result.valid else "",
            )
        return entries

    # ── Internals ──────────────────────────────────────────────

    def _claim(self) -> None:
        if self._used:
            raise RuntimeError("TransactionCoordinator is single-use; create a new one per transaction")
        self._used = True

    def _backup_all(self, operations: list[FileAction]) -> None:
        for operation in operations:
            target = self._executor.target(operation.path)
            wants_backup = operation.action in (ActionKind.MODIFY, ActionKind.DELETE) or (
                operation.action == ActionKind.CREATE and target.exists()
            )
            if not wants_backup or target in self._backups:
                continue
            try:
                handle = self._store.backup(target)
            except BackupError as e:
                logger.warning("%s; this path cannot be rolled back", e)
                self._unprotected.add(target)
                continue
            if handle is not None:
                self._backups[target] = handle
                logger.info("Backed up %s -> %s", operation.path, handle.backup_path.name)

    def _prepare(self, operation: FileAction) -> _LedgerEntry:
        target = self._executor.target(operation.path)
        return _LedgerEntry(
            operation=operation,
            target=target,
            resolved=self._executor.resolve(operation),
            existed=target.exists(),
            created_dirs=_missing_parents(target, self._root),
        )

    def _rollback(self, in_flight: _LedgerEntry | None) -> list[str]:
        entries = list(self._pending)
        if in_flight is not None:
            entries.append(in_flight)
        logger.warning("Rolling back %d operation(s)", len(entries))

        created_here = {entry.target for entry in entries if not entry.existed}
        failed: list[str] = []
        for entry in reversed(entries):
            try:
                self._undo(entry, created_here)
            except (OSError, BackupError) as e:
                logger.error("Rollback failed (%s): %s", entry.operation.path, e)
                failed.append(entry.operation.path)
                continue
            if (
                entry.target in self._unprotected
                and entry.target not in created_here
                and entry.operation.path not in failed
            ):
                failed.append(entry.operation.path)

        self._pending.clear()
        if failed:
            logger.error("Could not roll back: %s", ", ".join(failed))
        elif not self._policy.keep_backups:
            self._store.cleanup(list(self._backups.values()))
        return failed

    def _undo(self, entry: _LedgerEntry, created_here: set[Path]) -> None:
        path = entry.operation.path
        if not entry.existed:
            if entry.target.is_file():
                entry.target.unlink()
                logger.info("  removed %s", path)
        else:
            handle = self._backups.get(entry.target)
            if handle is not None:
                self._store.restore(handle)
                logger.info("  restored %s", path)
            elif entry.target in self._unprotected and entry.target not in created_here:
                logger.warning("  no backup for %s; left as is", path)

        for directory in entry.created_dirs:
            if directory.is_dir() and not any(directory.iterdir()):
                directory.rmdir()


def _missing_parents(target: Path, root: Path) -> list[Path]:
    """Ancestors of target below root that do not exist yet, deepest first."""
    missing: list[Path] = []
    parent = target.parent
    while parent != root and root in parent.parents and not parent.exists():
        missing.append(parent)
        parent = parent.parent
    return missing
