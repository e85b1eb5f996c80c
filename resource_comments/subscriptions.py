"""
Subscription registry.

Per user, per resource opt-in records that control who receives "new
comment" notifications. All operations are idempotent.
"""
import logging
from typing import Optional, Tuple

from django.contrib.contenttypes.models import ContentType
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.utils.translation import gettext_lazy as _

from .cache import get_cache_key
from .conf import comments_settings
from .exceptions import CommentValidationError, Unauthorized
from .models import CommentSubscription

logger = logging.getLogger(comments_settings.LOGGER_NAME)

SUBSCRIPTION_ACTIONS = ('add', 'delete', 'toggle')


def _resource_lookup(resource):
    return {
        'content_type': ContentType.objects.get_for_model(resource),
        'object_id': str(resource.pk),
    }


def _check_owner(owner):
    if owner is None or not getattr(owner, 'is_authenticated', False):
        raise Unauthorized()


def get_subscription(owner, resource) -> Optional[CommentSubscription]:
    return CommentSubscription.objects.filter(owner=owner, **_resource_lookup(resource)).first()


def is_subscribed(owner, resource, cache=None) -> bool:
    if owner is None or not getattr(owner, 'is_authenticated', False):
        return False

    def lookup():
        return CommentSubscription.objects.filter(owner=owner, **_resource_lookup(resource)).exists()

    if cache is None:
        return lookup()
    return cache.get_or_set(get_cache_key('subscribed', resource, owner), lookup)


def subscribe(owner, resource, cache=None) -> CommentSubscription:
    """
    Subscribe a user to a resource. Returns the existing subscription when
    there is one.
    """
    _check_owner(owner)

    subscription = get_subscription(owner, resource)
    if subscription is None:
        subscription = CommentSubscription(owner=owner, **_resource_lookup(resource))
        try:
            subscription.full_clean()
        except ValidationError as e:
            raise CommentValidationError.from_django(e)

        try:
            with transaction.atomic():
                subscription.save()
        except IntegrityError:
            # Lost a race against a concurrent subscribe for the same pair
            subscription = get_subscription(owner, resource)
            if subscription is None:
                raise
        else:
            logger.info(f"User {owner.pk} subscribed to {subscription.content_type}#{subscription.object_id}")

    if cache is not None:
        cache.set(get_cache_key('subscribed', resource, owner), True)
    return subscription


def unsubscribe(owner, resource, cache=None) -> Optional[CommentSubscription]:
    """
    Remove a subscription. Returns the removed record, or None when the user
    was not subscribed.
    """
    _check_owner(owner)

    subscription = get_subscription(owner, resource)
    if subscription is not None:
        subscription.delete()
        logger.info(f"User {owner.pk} unsubscribed from {subscription.content_type}#{subscription.object_id}")

    if cache is not None:
        cache.set(get_cache_key('subscribed', resource, owner), False)
    return subscription


def toggle(owner, resource, cache=None) -> Tuple[Optional[CommentSubscription], bool]:
    """
    Flip the subscription state.

    Returns:
        Tuple of (subscription or None, subscribed: bool)
    """
    _check_owner(owner)

    if get_subscription(owner, resource) is not None:
        return unsubscribe(owner, resource, cache=cache), False
    return subscribe(owner, resource, cache=cache), True


def apply_subscription_action(owner, resource, action=None, cache=None):
    """
    Run one of 'add', 'delete' or 'toggle' (default).

    Returns:
        Tuple of (subscription or None, subscribed: bool)
    """
    action = action or 'toggle'
    if action not in SUBSCRIPTION_ACTIONS:
        raise CommentValidationError(
            message=_('Action {action} not allowed.').format(action=action),
            errors={'action': [str(_('Action {action} not allowed.').format(action=action))]},
        )

    if action == 'add':
        return subscribe(owner, resource, cache=cache), True
    if action == 'delete':
        return unsubscribe(owner, resource, cache=cache), False
    return toggle(owner, resource, cache=cache)
