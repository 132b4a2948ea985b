"""
Infrastructure layer - external system integrations.
Keeps business logic clean from implementation details.
"""

from .stripe_gateway import StripeGateway

__all__ = ['StripeGateway']
