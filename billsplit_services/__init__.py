"""
billsplit_services -- Stateful orchestration over engines + kernel.

Dependency direction:
    billsplit_services/ -> billsplit_engines/  (allowed)
    billsplit_services/ -> billsplit_kernel/   (allowed)
    billsplit_engines/  -> billsplit_services/ (FORBIDDEN)
    billsplit_kernel/   -> billsplit_services/ (FORBIDDEN)
"""

from billsplit_services.bill_finalization import BillFinalizationService, FinalizedBill

__all__ = ["BillFinalizationService", "FinalizedBill"]
