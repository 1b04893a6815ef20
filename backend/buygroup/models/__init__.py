from .sequences import SequenceCounter, display_id
from .accounts import Profile, SessionToken
from .deals import Deal
from .warehouses import Warehouse
from .commitments import Commitment, Tracking, LabelRequest, Invoice

__all__ = [
    'SequenceCounter', 'display_id',
    'Profile', 'SessionToken',
    'Deal',
    'Warehouse',
    'Commitment', 'Tracking', 'LabelRequest', 'Invoice',
]
