"""
Django Resource Comments
========================

A reusable Django app adding threaded comments, moderation, subscriptions and
e-mail notifications to any model registered as a commentable resource.
"""

__version__ = '1.0.0'
