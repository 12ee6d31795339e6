import stripe
from flask import current_app

from gymdesk.utils.errors import IntegrationError

GATEWAY_METHODS = ('stripe',)


def refund(transaction_id, amount=None):
    """Refund a Stripe payment intent; returns the refund id.

    Raises IntegrationError when Stripe is not configured or rejects the call.
    """
    api_key = current_app.config.get('STRIPE_SECRET_KEY')
    if not api_key:
        raise IntegrationError('Payment gateway is not configured')
    stripe.api_key = api_key

    params = {'payment_intent': transaction_id}
    if amount is not None:
        params['amount'] = int(round(float(amount) * 100))
    try:
        result = stripe.Refund.create(**params)
    except stripe.StripeError as e:
        current_app.logger.error("Stripe refund failed for %s: %s", transaction_id, e)
        raise IntegrationError('Refund failed at payment gateway')
    return result.id
