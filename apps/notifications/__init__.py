"""Notifications app package.

Delivers booking notifications to guests and hosts. Booking events are
routed from the message bus to a notifier, which queues a Celery task
that stores the notification.
"""
