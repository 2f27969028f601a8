"""
Shared Kernel

Base classes, value objects and error types shared by every app.
The slot state machine and the payment settlement code are both built on it.
"""
