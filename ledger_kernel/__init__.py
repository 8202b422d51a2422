"""
Ledger Kernel

A double-entry bookkeeping core for property management with:
- Balanced, append-only journal entries
- Fiscal period locking
- Gapless per-type serial numbers
- Full auditability via hash chain
- Reports derived on demand from the journal
"""

__version__ = "0.1.0"
