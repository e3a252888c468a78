"""
Procurement Kernel

Pure domain layer for the FPO procurement reconciliation engine:
- Fixed-precision money and quantity values (Decimal only)
- Immutable procurement, payment, sale, and inventory records
- Inclusive time windows and enumerated record filters
- Typed exceptions and structured JSON logging
"""

__version__ = "0.1.0"
