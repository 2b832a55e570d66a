"""
Deals app services layer.

Services contain business logic and orchestrate operations across models.
State-changing operations lock the deal row and publish feed events only
after their transaction commits.
"""

from apps.deals.exceptions import (
    DealsServiceError,
    DealNotFoundError,
    DealClosedError,
    AlreadyParticipantError,
    InvalidQuantityError,
    ParticipantNotFoundError,
    InvalidTierTableError,
    InsufficientPermissionsError,
    PaymentGatewayError,
)

from .deal_management import (
    create_deal,
    update_deal,
    get_deal_by_id,
)

from .participation import (
    JoinResult,
    join_deal,
    reprice_deal,
    get_price_table,
    quote_price,
)

from .closure import (
    ClosureResult,
    close_deal,
    close_expired_deals,
)


__all__ = [
    # Exceptions
    'DealsServiceError',
    'DealNotFoundError',
    'DealClosedError',
    'AlreadyParticipantError',
    'InvalidQuantityError',
    'ParticipantNotFoundError',
    'InvalidTierTableError',
    'InsufficientPermissionsError',
    'PaymentGatewayError',

    # Deal management
    'create_deal',
    'update_deal',
    'get_deal_by_id',

    # Participation
    'JoinResult',
    'join_deal',
    'reprice_deal',
    'get_price_table',
    'quote_price',

    # Closure
    'ClosureResult',
    'close_deal',
    'close_expired_deals',
]
