from .products import Product, Checkpoint
from .custody import CustodyTransfer
from .compliance import VerifierAuthorization, Certification
from .sequences import IdSequence

__all__ = [
    'Product', 'Checkpoint',
    'CustodyTransfer',
    'VerifierAuthorization', 'Certification',
    'IdSequence',
]
