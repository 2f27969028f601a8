"""Users app package.

Identity is provided by Django's auth ``User`` and DRF SimpleJWT tokens.
This app turns an authenticated request into the caller identity the
slot domain works with and exposes the token endpoints.
"""
