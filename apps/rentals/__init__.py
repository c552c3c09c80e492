"""Rentals app package.

This app holds the vehicle-rental checkout core: the booking session
that collects a user's choices, the pricing engine, availability checks
and the checkout state machine that creates a reservation and collects
payment against the booking API and Stripe.
"""
