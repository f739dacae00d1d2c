"""Valuation ledger engine.

This package contains the building blocks of the valuation ledger:

- tax: progressive tax on positive deltas
- calendar: market hours in the reference timezone (DST aware)
- ledger: ledger state, document parsing, direct events
- decay: hourly decay catch-up and its scheduler
- candles: OHLC reconstruction from the transaction log
- persistence: persistence boundary (atomic read-modify-write)
- storage: in-memory and PostgreSQL stores
"""
