"""Audit ledger adapters.

Same shape as the rate limiting adapters: an abstract ledger the gate and
diagnostics routes depend on, and an in-memory implementation.
"""
