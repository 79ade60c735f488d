"""Properties app package.

Listings as the booking engine reads them: stay limits, pricing inputs,
cancellation policy, instant-book flag and host-blocked dates.
"""
