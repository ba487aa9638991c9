"""
                        Services Module

Business logic and its external collaborators. Collaborators come as an
abstract base plus interchangeable implementations picked by a factory.

Services:
    - orders: the order lifecycle engine
    - payment: Stripe payment intents and webhooks (demo stand-in without keys)
"""
