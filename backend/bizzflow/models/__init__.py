from .auth import User, SessionToken
from .sequences import Counter
from .vendors import Vendor
from .purchasing import (
    PurchaseOrder,
    PurchaseOrderLine,
    PurchaseOrderApproval,
    PurchaseOrderPayment,
    PurchaseOrderAttachment,
)

__all__ = [
    'User', 'SessionToken',
    'Counter',
    'Vendor',
    'PurchaseOrder', 'PurchaseOrderLine', 'PurchaseOrderApproval',
    'PurchaseOrderPayment', 'PurchaseOrderAttachment',
]
