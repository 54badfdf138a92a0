"""
Charge Kernel

Plugin-based reconciliation of ledger charges:
- Each plugin computes the entry that should exist for a business event
- The engine converges the persisted ledger to that expectation
- Idempotent under repeated and concurrent triggers
- Read-only verification and integrity reporting
"""

__version__ = "0.1.0"
