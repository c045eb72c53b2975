"""Commit gate package."""

from statement_ingest.commit.gate import (
    CommitGate,
    InvalidStateTransitionError,
    provenance_note,
)

__all__ = ["CommitGate", "InvalidStateTransitionError", "provenance_note"]
