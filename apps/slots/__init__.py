"""Slots app package.

Holds the bookable time slots: storage, the reservation state machine,
overlap checks on creation, the expiry sweeper and the public API.
"""
