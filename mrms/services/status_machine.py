"""
Request status machine — legal transitions and role gates.

Edges below cover everything from ``recheck`` onward. The two entry edges are
owned by their own handlers and are not in this table:

  draft   → pending            (submission, see request_service.send_draft_request)
  pending → recheck | rejected (manager review, see request_service.update_request_status)

Role checks always run before the table is consulted, so a wrong-role caller
gets ``Unauthorized`` even for an edge that would otherwise be illegal.
"""

from typing import Iterable, Optional, Union

from mrms.errors import InvalidTransition, Unauthorized

SITE_ENGINEER = "site_engineer"
MANAGER = "manager"
PURCHASE_OFFICER = "purchase_officer"

VALID_TRANSITIONS: dict[str, frozenset[str]] = {
    "recheck": frozenset({"ready_for_cc", "rejected", "ready_for_po", "ready_for_delivery", "delivery_stage"}),
    "ready_for_cc": frozenset({"cc_pending", "cc_rejected", "ready_for_po", "delivery_stage", "ready_for_delivery"}),
    "cc_pending": frozenset({"cc_approved", "cc_rejected", "ready_for_cc"}),
    "cc_approved": frozenset({"ready_for_po"}),
    "cc_rejected": frozenset({"ready_for_cc"}),
    "ready_for_po": frozenset({"pending_po", "delivery_stage", "ready_for_delivery"}),
    "pending_po": frozenset({"ready_for_delivery", "rejected_po"}),
    "rejected_po": frozenset({"ready_for_po"}),
    "ready_for_delivery": frozenset({"delivered"}),
    "delivery_stage": frozenset({"delivered", "ready_for_delivery"}),
}

# Manager review verbs for a pending request → (stored status, direct_action)
MANAGER_REVIEW_OUTCOMES: dict[str, tuple[str, Optional[str]]] = {
    "approved": ("recheck", None),
    "direct_po": ("recheck", "po"),
    "delivery_stage": ("recheck", "delivery"),
    "rejected": ("rejected", None),
}


def allowed_next(current_status: str) -> frozenset[str]:
    return VALID_TRANSITIONS.get(current_status, frozenset())


def can_transition(current_status: str, new_status: str) -> bool:
    return new_status in allowed_next(current_status)


def check_transition(current_status: str, new_status: str) -> None:
    """Raise InvalidTransition unless ``current_status → new_status`` is in the table."""
    if not can_transition(current_status, new_status):
        raise InvalidTransition(current_status, new_status)


def require_role(user, roles: Union[Iterable[str], str], message: Optional[str] = None) -> None:
    """Raise Unauthorized unless ``user.role`` is one of ``roles``."""
    if isinstance(roles, str):
        roles = (roles,)
    roles = tuple(roles)
    if user.role not in roles:
        raise Unauthorized(
            message
            or f"Unauthorized: role '{user.role}' cannot perform this action. Required: {', '.join(roles)}"
        )


def require_owner(user, owner_id, message: str) -> None:
    if str(user.id) != str(owner_id):
        raise Unauthorized(message)


def check_purchase_transition(user, current_status: str, new_status: str) -> None:
    """Gate for every purchase-officer driven edge: role first, then the table."""
    require_role(
        user,
        PURCHASE_OFFICER,
        "Unauthorized: Only purchase officers can update purchase request status",
    )
    if (current_status, new_status) == ("delivery_stage", "delivered"):
        raise Unauthorized(
            "Unauthorized: Only the requesting site engineer can confirm this delivery"
        )
    check_transition(current_status, new_status)
