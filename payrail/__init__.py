"""Payrail disbursement confirmation and reconciliation service."""
