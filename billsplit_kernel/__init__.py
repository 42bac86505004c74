"""
Billsplit Kernel

Core of the bill splitting system:
- Exact money arithmetic with explicit rounding
- Pure, immutable domain objects
- Payment request lifecycle as a role-guarded state machine
- Persistence with compare-and-swap status updates
"""

__version__ = "0.1.0"
