"""HTTP API for probation, allocation and payroll operations."""
