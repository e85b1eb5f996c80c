from django.contrib.contenttypes.models import ContentType
from django.db import models
from django.db.models import Q


class CommentQuerySet(models.QuerySet):
    """
    Custom QuerySet for the Comment model.
    """

    def with_related(self):
        """
        Optimize foreign key access for list displays.
        """
        return self.select_related('owner', 'content_type', 'site', 'parent').prefetch_related('children', 'resource')

    def for_resource(self, resource):
        """
        Return all comments for a resource instance.
        """
        content_type = ContentType.objects.get_for_model(resource)
        return self.filter(content_type=content_type, object_id=str(resource.pk))

    def approved(self):
        return self.filter(approved=True)

    def pending(self):
        """
        Return unapproved comments (moderation queue).
        """
        return self.filter(approved=False)

    def flagged(self):
        return self.filter(flagged=True)

    def spam(self):
        return self.filter(spam=True)

    def published(self):
        """Approved comments that are not spam."""
        return self.filter(approved=True, spam=False)

    def from_ip_since(self, ip, since):
        """
        Comments posted from an IP address after a given datetime.
        Used by the rate limiter.
        """
        return self.filter(ip=ip, created_at__gt=since)

    def visible_to_user(self, user):
        """Return comments visible to a specific user."""
        from .utils import is_moderator

        if is_moderator(user):
            return self

        if not user or not user.is_authenticated:
            return self.published()

        # Authenticated regular users see published comments plus their own
        return self.filter(Q(approved=True, spam=False) | Q(owner=user))


class CommentManager(models.Manager.from_queryset(CommentQuerySet)):
    """
    Custom Manager for Comment model.
    """

    def create_for_resource(self, resource, **kwargs):
        """
        Create a new comment for a specific resource.
        """
        content_type = ContentType.objects.get_for_model(resource)
        return self.create(
            content_type=content_type,
            object_id=str(resource.pk),
            **kwargs
        )


class CommentSubscriptionQuerySet(models.QuerySet):

    def for_resource(self, resource):
        content_type = ContentType.objects.get_for_model(resource)
        return self.filter(content_type=content_type, object_id=str(resource.pk))

    def for_owner(self, user):
        return self.filter(owner=user)


CommentSubscriptionManager = models.Manager.from_queryset(CommentSubscriptionQuerySet)


def comments_for_resource(resource, user=None, cache=None):
    """
    Comments of a resource visible to ``user``, oldest first so that replies
    follow their parents.

    The list is memoised in ``cache`` when one is given.
    """
    from .cache import get_cache_key
    from .models import Comment

    def lookup():
        return list(
            Comment.objects.for_resource(resource)
            .visible_to_user(user)
            .select_related('owner')
            .order_by('created_at', 'pk')
        )

    if cache is None:
        return lookup()
    owner = user if user is not None and user.is_authenticated else None
    return cache.get_or_set(get_cache_key('comments', resource, owner), lookup)
