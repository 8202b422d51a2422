"""
Ledger modules -- business logic built on the kernel.

documents  -- document lifecycle and the document-to-ledger bridge
reporting  -- financial statements and sub-ledgers folded from entries
analytics  -- advisory anomaly detection, aging and liquidity helpers
"""
