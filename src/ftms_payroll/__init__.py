"""FTMS payroll period lifecycle service."""

__version__ = "0.1.0"
