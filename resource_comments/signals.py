import logging

from django.contrib.contenttypes.models import ContentType
from django.db import transaction
from django.db.models.signals import post_delete
from django.dispatch import receiver, Signal

from .conf import comments_settings
from .models import Comment, CommentSubscription
from .notifications import FLAGGED, SUBSCRIBERS, get_moderator_emails, schedule_notification
from .resources import is_commentable

logger = logging.getLogger(comments_settings.LOGGER_NAME)


# Lifecycle signals
comment_submitted = Signal()
comment_edited = Signal()
comment_deleted = Signal()

# Moderation signals
comment_approved = Signal()
comment_unapproved = Signal()
comment_flagged = Signal()
comment_unflagged = Signal()
comment_marked_spam = Signal()
comment_marked_not_spam = Signal()

BATCH_UPDATABLE_FIELDS = ('approved', 'flagged', 'spam')


def safe_send(signal_obj, sender, **extra_kwargs):
    """Safely send a signal, avoiding duplicate 'signal' keyword errors."""
    extra_kwargs.pop("signal", None)
    signal_obj.send(sender=sender, **extra_kwargs)


def _transition(comment, changes, action, signal_obj, user=None):
    """
    Apply flag changes, record them in the history and send the signal.

    Returns False without saving when every flag already has its target
    value.
    """
    if all(getattr(comment, field) == value for field, value in changes.items()):
        return False

    for field, value in changes.items():
        setattr(comment, field, value)
    comment.add_history(action, user=user)
    comment.save(update_fields=list(changes) + ['history', 'updated_at'])

    safe_send(signal_obj, sender=Comment, comment=comment, user=user)
    logger.info(f"Comment {comment.pk} {action} by user {getattr(user, 'pk', None)}")
    return True


# ============================================================================
# MODERATION TRANSITIONS
# ============================================================================

def approve_comment(comment, moderator=None):
    """
    Approve a comment.
    Schedules the subscriber notification when NOTIFY_SUBSCRIBERS is on.

    Returns:
        Comment instance
    """
    if _transition(comment, {'approved': True}, 'approved', comment_approved, moderator):
        if comments_settings.NOTIFY_SUBSCRIBERS:
            schedule_notification(SUBSCRIBERS, comment)
    return comment


def unapprove_comment(comment, moderator=None):
    _transition(comment, {'approved': False}, 'unapproved', comment_unapproved, moderator)
    return comment


def flag_comment(comment, user=None):
    """
    Flag a comment for review.
    Moderators are notified when NOTIFY_ON_FLAG is on and addresses are
    configured.
    """
    if _transition(comment, {'flagged': True}, 'flagged', comment_flagged, user):
        if comments_settings.NOTIFY_ON_FLAG and get_moderator_emails():
            schedule_notification(FLAGGED, comment)
    return comment


def unflag_comment(comment, user=None):
    _transition(comment, {'flagged': False}, 'unflagged', comment_unflagged, user)
    return comment


def mark_spam(comment, moderator=None):
    """Spam comments are never approved."""
    _transition(comment, {'spam': True, 'approved': False}, 'spam', comment_marked_spam, moderator)
    return comment


def mark_not_spam(comment, moderator=None):
    _transition(comment, {'spam': False}, 'not_spam', comment_marked_not_spam, moderator)
    return comment


TRANSITIONS = {
    ('approved', True): approve_comment,
    ('approved', False): unapprove_comment,
    ('flagged', True): flag_comment,
    ('flagged', False): unflag_comment,
    ('spam', True): mark_spam,
    ('spam', False): mark_not_spam,
}


def batch_update(queryset, user=None, **flags):
    """
    Apply moderation flags to many comments.
    Only approved, flagged and spam may be batch updated.

    Returns:
        Number of comments processed
    """
    invalid = [field for field in flags if field not in BATCH_UPDATABLE_FIELDS]
    if invalid:
        raise ValueError(f"Batch update is not allowed for: {', '.join(invalid)}")

    count = 0
    with transaction.atomic():
        for comment in queryset:
            for field, value in flags.items():
                TRANSITIONS[(field, bool(value))](comment, user)
            count += 1
    return count


def delete_comment(comment, moderator=None):
    """
    Delete a comment. Replies are re-parented to the deleted comment's parent.
    """
    pk = comment.pk
    safe_send(comment_deleted, sender=Comment, comment=comment, user=moderator)
    comment.delete()
    logger.info(f"Comment {pk} deleted by user {getattr(moderator, 'pk', None)}")


# ============================================================================
# RESOURCE DELETION
# ============================================================================

@receiver(post_delete, dispatch_uid='resource_comments_resource_deleted')
def on_resource_deleted(sender, instance, **kwargs):
    """
    Detach comments from a deleted resource and drop its subscriptions.
    """
    if sender in (Comment, CommentSubscription) or not is_commentable(sender):
        return

    content_type = ContentType.objects.get_for_model(sender)
    lookup = {'content_type': content_type, 'object_id': str(instance.pk)}
    detached = Comment.objects.filter(**lookup).update(content_type=None, object_id='')
    CommentSubscription.objects.filter(**lookup).delete()
    if detached:
        logger.info(f"Detached {detached} comments from deleted resource {content_type}#{instance.pk}")
