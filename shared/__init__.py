"""
Shared Kernel

Entity, aggregate, event and value object base classes plus the message
bus used by the rentals context.
"""
