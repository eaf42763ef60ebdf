"""
Settlement Kernel

Shared infrastructure for the payment-request settlement back office:
- Declarative ORM base with UUID keys and Decimal money columns
- Engine / session management with commit-or-rollback scopes
- Injectable clock
- Typed exception hierarchy with machine-readable codes
- Structured JSON logging
"""

__version__ = "0.1.0"
