# storefront/services/access.py
from enum import Enum
from typing import Optional
from ..models.order import Order
from ..models.user import Identity


class Action(str, Enum):
    READ = "read"
    PAY = "pay"
    DELIVER = "deliver"
    LIST = "list"


OWNER_ACTIONS = frozenset({Action.READ, Action.PAY})


def can_access(identity: Optional[Identity], order: Optional[Order], action: Action) -> bool:
    """Owner may read and pay their own order, admins may do anything"""
    if identity is None:
        return False
    if identity.is_admin:
        return True
    if order is None:
        return False
    return action in OWNER_ACTIONS and order.owner_id == identity.user_id
