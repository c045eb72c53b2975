"""
Commit Gate

DESIGN DECISION: This is the ONLY place that writes transactions. A gate
instance handles exactly one batch and moves through:

    RECEIVED -> VALIDATED -> PERSISTED
    RECEIVED -> REJECTED

Write order is statement record first, then one bulk insert. If the bulk
insert fails, the statement record is left in place (there is no
compensating delete) and the failure is raised as a PersistenceError that
names the orphaned record so it can be reconciled by hand.

The gate is not idempotent: committing the same batch twice creates two
statement records and duplicate transactions.
"""

from typing import Optional, Sequence
from uuid import UUID

import structlog

from statement_ingest.audit import AuditLogger
from statement_ingest.errors import CommitValidationError, PersistenceError
from statement_ingest.models.transaction import (
    CommitResult,
    CommitState,
    StatementRecord,
)
from statement_ingest.services.storage.interface import (
    StatementStoreInterface,
    StorageError,
    TransactionHistoryInterface,
)
from statement_ingest.validation.commit_validator import CommitRow, CommitValidator


logger = structlog.get_logger(__name__)


def provenance_note(file_name: str) -> str:
    return f"Imported from {file_name}"


class InvalidStateTransitionError(Exception):
    """A gate was asked to move to a state it cannot reach."""
    pass


_ALLOWED_TRANSITIONS = {
    CommitState.RECEIVED: {CommitState.VALIDATED, CommitState.REJECTED},
    CommitState.VALIDATED: {CommitState.PERSISTED},
    CommitState.PERSISTED: set(),
    CommitState.REJECTED: set(),
}


class CommitGate:
    """
    Validates and persists one reviewed batch.

    Usage:
        gate = CommitGate(statements, history, validator, audit)
        result = await gate.commit(user_id=..., account_id=..., ...)
    """

    def __init__(
        self,
        statement_store: StatementStoreInterface,
        transaction_history: TransactionHistoryInterface,
        validator: Optional[CommitValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._statements = statement_store
        self._history = transaction_history
        self._validator = validator or CommitValidator()
        self._audit = audit_logger or AuditLogger()
        self._state = CommitState.RECEIVED
        self._history_log: list[CommitState] = [CommitState.RECEIVED]

    @property
    def state(self) -> CommitState:
        return self._state

    @property
    def transitions(self) -> list[CommitState]:
        """Every state this gate has been in, in order."""
        return list(self._history_log)

    def _transition(self, new_state: CommitState) -> None:
        if new_state not in _ALLOWED_TRANSITIONS[self._state]:
            raise InvalidStateTransitionError(
                f"Cannot move commit from {self._state.value} to {new_state.value}"
            )
        logger.info(
            "commit_state_changed",
            from_state=self._state.value,
            to_state=new_state.value,
        )
        self._state = new_state
        self._history_log.append(new_state)

    async def commit(
        self,
        user_id: str,
        account_id: str,
        file_ref: str,
        file_name: str,
        file_type: str,
        transactions: Sequence[CommitRow],
        correlation_id: UUID,
    ) -> CommitResult:
        """
        Validate the batch and persist it.

        Raises:
            CommitValidationError: Batch rejected; nothing was written
            PersistenceError: A write failed (see statement_id for an orphan)
            InvalidStateTransitionError: The gate was already used
        """
        if self._state != CommitState.RECEIVED:
            raise InvalidStateTransitionError(
                f"This commit has already finished ({self._state.value})"
            )

        try:
            prepared = self._validator.validate(transactions, provenance_note(file_name))
        except CommitValidationError as e:
            self._transition(CommitState.REJECTED)
            await self._audit.log_commit_rejected(
                account_id=account_id,
                reason=str(e),
                issue_count=len(e.issues),
                correlation_id=correlation_id,
            )
            raise

        self._transition(CommitState.VALIDATED)

        record = StatementRecord(
            user_id=user_id,
            account_id=account_id,
            file_name=file_name,
            file_ref=file_ref,
            file_type=file_type,
            transaction_count=len(prepared),
        )

        try:
            record = await self._statements.create_record(record)
        except StorageError as e:
            await self._audit.log_external_service_error(
                service="statement_store",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise PersistenceError(
                f"Could not save the statement record; nothing was imported. {e}"
            ) from e

        await self._audit.log_statement_record_created(
            statement_id=record.id,
            file_name=file_name,
            transaction_count=record.transaction_count,
            correlation_id=correlation_id,
        )

        try:
            await self._history.bulk_insert(account_id, prepared)
        except StorageError as e:
            logger.error(
                "bulk_insert_failed",
                statement_id=str(record.id),
                account_id=account_id,
                transaction_count=len(prepared),
            )
            await self._audit.log_persistence_failed(
                statement_id=record.id,
                account_id=account_id,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise PersistenceError(
                f"The statement was recorded but its transactions could not be "
                f"saved. Statement {record.id} needs to be reconciled. {e}",
                statement_id=record.id,
            ) from e

        self._transition(CommitState.PERSISTED)
        await self._audit.log_transactions_committed(
            statement_id=record.id,
            account_id=account_id,
            transaction_count=len(prepared),
            correlation_id=correlation_id,
        )

        return CommitResult(
            success=True,
            transaction_count=len(prepared),
            statement_id=record.id,
        )
