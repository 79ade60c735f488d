"""Bookings app package.

This app encapsulates the booking engine: the booking aggregate and its
state machine, pricing, availability checks, cancellation refunds and
the optimistic compare-and-swap that keeps confirmed stays of a
property from overlapping.
"""
