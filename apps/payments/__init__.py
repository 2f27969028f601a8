"""Payments app package.

Talks to the payment provider: opens checkout sessions for pending
slots and turns signed webhook deliveries into settlement of those slots.
"""
