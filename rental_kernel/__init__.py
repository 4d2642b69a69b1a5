"""
Rental Kernel

Allocation and lifecycle core for time-bounded rentals of physical stock:
- Per-product inventory pools with row-locked, versioned updates
- Period conflict resolution over overlapping orders
- Order lifecycle state machine
- Typed error kinds with explicit retry/escalation semantics
"""

__version__ = "0.1.0"
