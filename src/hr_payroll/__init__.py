"""Payroll & probation transition engine for an HR backend."""

__version__ = "1.0.0"
