"""
Shop Kernel - operations core for a device repair / IT-asset shop.

A single-writer, in-memory domain state model with:
- Stock-movement transactions gated by an approval state machine
- One-open-assignment-per-asset checkout tracking
- Repair job progression that consumes parts through the inventory ledger
- Invoices derived from repair jobs
- Role and per-employee permission checks
- Snapshot persistence after every accepted mutation
"""

__version__ = "0.1.0"
