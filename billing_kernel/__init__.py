"""
Billing Kernel

Shared foundation for facility billing:
- Typed exceptions with machine-readable codes
- Structured JSON logging
- Pure domain records and billing periods
- SQLAlchemy declarative base and session helpers
"""

__version__ = "0.1.0"
