"""
Clinic Ledger

Scheduling and billing core for a multi-tenant clinic management system:
appointment conflict detection and lifecycle, invoice numbering and totals,
and payment reconciliation.
"""

__version__ = "1.0.0"
