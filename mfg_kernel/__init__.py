"""
Manufacturing Kernel

Shared foundation for the planning core:
- Structured JSON logging with run-scoped context
- Typed exception hierarchy with machine-readable codes
- Injectable clock and planning horizon
- SQLAlchemy declarative base and engine/session management
"""

__version__ = "0.1.0"
