"""
Checkout gateway: the single call into Stripe Checkout.
"""
import logging

import stripe
from flask import current_app

logger = logging.getLogger(__name__)


class CheckoutGateway:
    """Create Stripe Checkout Sessions for tour bookings.

    The API key is passed per call rather than set on the stripe module.
    """

    def __init__(self, secret_key, app_url, currency='usd'):
        self.secret_key = secret_key
        self.app_url = app_url.rstrip('/')
        self.currency = currency

    def create_session(self, tour, user):
        """Create a checkout session for one place on a tour.

        Args:
            tour: Tour being booked
            user: Identity paying for the booking

        Returns:
            The created stripe Session (``id`` and ``url`` used by callers)
        """
        session = stripe.checkout.Session.create(
            api_key=self.secret_key,
            payment_method_types=['card'],
            mode='payment',
            success_url=f'{self.app_url}/my-tours?tour={tour.id}',
            cancel_url=f'{self.app_url}/tour/{tour.slug}',
            customer_email=user.email,
            client_reference_id=str(tour.id),
            line_items=[{
                'quantity': 1,
                'price_data': {
                    'currency': self.currency,
                    'unit_amount': int(round(tour.price * 100)),
                    'product_data': {
                        'name': f'{tour.name} Tour',
                        'description': tour.summary,
                    },
                },
            }],
            metadata={'user_id': str(user.id), 'tour_id': str(tour.id)},
        )
        logger.info('Checkout session %s created for tour %s (user %s)', session.id, tour.id, user.id)
        return session


def get_checkout_gateway():
    """The CheckoutGateway built for the current app."""
    return current_app.extensions['checkout_gateway']
