"""
Payment gateways used when a deal closes.

A gateway charges one participant and returns a provider reference, or
raises PaymentGatewayError when the charge is declined. The gateway class is
chosen by the ``DEALRUSH_PAYMENT_GATEWAY`` setting.
"""

import logging
import secrets

from django.conf import settings
from django.utils.module_loading import import_string


logger = logging.getLogger(__name__)


class PaymentGateway:
    """Interface for charging a participant's locked final price."""

    def charge(self, participant, amount):
        """
        Charge ``amount`` for ``participant``.

        Returns:
            str: Provider reference for the charge.

        Raises:
            PaymentGatewayError: When the charge is declined or fails.
        """
        raise NotImplementedError


class RecordingGateway(PaymentGateway):
    """Records the charge locally without contacting a payment provider."""

    def charge(self, participant, amount):
        # Format: DEAL-<short-deal-id>-<position>-<random>
        short_id = str(participant.deal_id)[:8].upper()
        reference = f"DEAL-{short_id}-{participant.position:04d}-{secrets.token_hex(3).upper()}"
        logger.info(
            "Recorded charge %s of %s for participant #%s",
            reference, amount, participant.position,
        )
        return reference


def get_payment_gateway():
    gateway_class = import_string(settings.DEALRUSH_PAYMENT_GATEWAY)
    return gateway_class()
