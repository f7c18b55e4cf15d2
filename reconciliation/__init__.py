"""Batch-Formula-Requisition reconciliation engine.

Pure engine functions live in ``reconciliation.engine``; the async entry
points that read from a record store live in ``reconciliation.service``.
"""
