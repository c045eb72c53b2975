"""
Statement Ingest - Source Package

Bank statement ingestion for a household budgeting application: turns an
uploaded CSV/TSV, image or PDF statement into a reviewed, deduplicated,
categorized batch of transactions, and commits the approved rows.

DESIGN PRINCIPLES:
1. Model reads → Human reviews → Gate verifies
2. Reject rather than guess (dates, amounts)
3. Only the commit gate writes
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Statement Ingest Team"
