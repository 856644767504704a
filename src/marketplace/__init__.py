"""Marketplace — order lifecycle and payment reconciliation for a multi-vendor shop."""
