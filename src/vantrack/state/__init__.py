"""State/store layer.

This package is the single owner of the shared per-student and per-vehicle
records, the breadcrumb history and the audit ledger rows. Every mutation
runs inside a unit of work and is announced to listeners only once it has
committed.
"""
