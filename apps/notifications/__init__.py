"""Notifications app package.

Sends best-effort e-mails about slot bookings. Handlers subscribe to
slot domain events on the message bus and hand delivery to Celery.
"""
