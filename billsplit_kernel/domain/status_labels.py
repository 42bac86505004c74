"""
Contextual status labels.

The same payment request status reads differently to the payer and the
payee.  ``project`` is the one place that mapping lives; every caller that
shows a status to a participant goes through it.
"""

from __future__ import annotations

from billsplit_kernel.domain.outcome import Outcome
from billsplit_kernel.domain.payment_request import PaymentRequest, PaymentStatus, Role
from billsplit_kernel.exceptions import UnauthorizedActorError

# status -> (label for payee, label for payer)
STATUS_LABELS: dict[PaymentStatus, tuple[str, str]] = {
    PaymentStatus.SENT: ("Sent", "Waiting for your response"),
    PaymentStatus.ACCEPTED: ("They accepted", "You accepted"),
    PaymentStatus.COMPLETED: ("They paid you", "You paid"),
    PaymentStatus.REJECTED: ("They declined", "You declined"),
    PaymentStatus.CANCELLED: ("You cancelled", "They cancelled"),
    PaymentStatus.DISPUTED: ("Under dispute", "Under dispute"),
}


def project(status: PaymentStatus | str, viewer_is_payee: bool) -> str:
    """Label for ``status`` as seen by the payee (True) or the payer (False)."""
    payee_label, payer_label = STATUS_LABELS[PaymentStatus.parse(status)]
    return payee_label if viewer_is_payee else payer_label


def project_for_viewer(request: PaymentRequest, viewer_id: str) -> Outcome[str]:
    """Label for ``request`` as seen by ``viewer_id``; outsiders get ``Unauthorized``."""
    role = request.role_of(viewer_id)
    if role is None:
        return Outcome.fail(UnauthorizedActorError(request.id, viewer_id, "view"))
    return Outcome.success(project(request.status, role is Role.PAYEE))
