"""
E-mail notifications for resource-comments.

Notifications are sent from a background job. ``schedule_notification``
hands the job to the configured ``JOB_DISPATCHER`` (Celery by default), and
the job runs ``NotificationDispatcher.perform``.

Three notification types exist:

- ``subscribers``: one e-mail per user subscribed to the resource.
- ``moderators``: one e-mail per address in MODERATOR_NOTIFICATION_EMAILS.
- ``flagged``: same recipients as ``moderators``, with a link to the
  moderation view.

Templates use ``{placeholder}`` substitution and can be overridden through
the ``EMAIL_*`` settings.
"""
import logging
from typing import Dict, List, Tuple

from django.conf import settings
from django.contrib.sites.models import Site
from django.core.exceptions import ValidationError
from django.core.mail import send_mail
from django.core.validators import validate_email
from django.urls import NoReverseMatch, reverse

from .conf import comments_settings
from .exceptions import NotificationError, ResourceNotFound
from .models import Comment, CommentSubscription
from .resources import (
    build_absolute_url,
    get_resource,
    get_resource_admin_url,
    get_resource_title,
    get_resource_url,
)
from .utils import parse_email_list, render_template

logger = logging.getLogger(comments_settings.LOGGER_NAME)

JOB_NAME = 'send_notifications'

SUBSCRIBERS = 'subscribers'
MODERATORS = 'moderators'
FLAGGED = 'flagged'
NOTIFICATION_TYPES = (SUBSCRIBERS, MODERATORS, FLAGGED)

DEFAULT_TEMPLATES = {
    SUBSCRIBERS: (
        '[{site_name}] New comment',
        'Hi,\n\n'
        'A new comment was published for resource #{resource_id} ({resource_title}).\n\n'
        'You can see it at {resource_url}#comments.\n\n'
        'Sincerely,',
    ),
    MODERATORS: (
        '[{site_name}] New public comment',
        'A comment was added to resource #{resource_id} ({resource_title}).\n\n'
        'Author: {comment_author} <{comment_email}>\n\n'
        'Comment:\n{comment_body}\n\n'
        'Review at: {resource_url}',
    ),
    FLAGGED: (
        '[{site_name}] Comment flagged for review',
        'A comment has been flagged for review.\n\n'
        'Resource: #{resource_id} ({resource_title})\n'
        'Author: {comment_author} <{comment_email}>\n\n'
        'Comment:\n{comment_body}\n\n'
        'Review at: {admin_url}',
    ),
}

TEMPLATE_SETTINGS = {
    SUBSCRIBERS: ('EMAIL_SUBSCRIBER_SUBJECT', 'EMAIL_SUBSCRIBER_BODY'),
    MODERATORS: ('EMAIL_MODERATOR_SUBJECT', 'EMAIL_MODERATOR_BODY'),
    FLAGGED: ('EMAIL_FLAGGED_SUBJECT', 'EMAIL_FLAGGED_BODY'),
}


def get_site_name(site=None) -> str:
    if comments_settings.SITE_NAME:
        return comments_settings.SITE_NAME
    site = site or Site.objects.get_current()
    return site.name


def get_moderator_emails() -> List[str]:
    """
    Configured moderator addresses. Invalid addresses are skipped.
    """
    emails = []
    for email in parse_email_list(comments_settings.MODERATOR_NOTIFICATION_EMAILS):
        try:
            validate_email(email)
        except ValidationError:
            logger.debug(f"Skipping invalid moderator address: {email}")
            continue
        emails.append(email)
    return emails


def get_comment_admin_url(comment, site=None) -> str:
    try:
        path = reverse('admin:resource_comments_comment_change', args=[comment.pk])
    except NoReverseMatch:
        return ''
    return build_absolute_url(path, site)


class NotificationDispatcher:
    """
    Renders and sends notification e-mails for one comment.
    """

    def __init__(self, from_email=None, connection=None):
        self.from_email = (
            from_email
            or comments_settings.DEFAULT_FROM_EMAIL
            or settings.DEFAULT_FROM_EMAIL
        )
        self.connection = connection

    def perform(self, notification_type=None, comment_id=None, resource_type=None, resource_id=None) -> int:
        """
        Run one notification job.

        A missing argument, comment or resource stops the job. Nothing is
        retried here.

        Returns:
            Number of e-mails sent.
        """
        if not (notification_type and comment_id and resource_type and resource_id):
            logger.error(
                f"Notification job is missing arguments: type={notification_type}, "
                f"comment_id={comment_id}, resource={resource_type}#{resource_id}"
            )
            return 0

        handler = {
            SUBSCRIBERS: self.notify_subscribers,
            MODERATORS: self.notify_moderators,
            FLAGGED: self.notify_flagged,
        }.get(notification_type)
        if handler is None:
            logger.error(f"Unknown notification type: {notification_type}")
            return 0

        comment = Comment.objects.select_related('owner', 'site').filter(pk=comment_id).first()
        if comment is None:
            logger.error(f"Notification {notification_type}: comment #{comment_id} not found")
            return 0

        try:
            resource = get_resource(resource_type, resource_id)
        except ResourceNotFound:
            logger.error(f"Notification {notification_type}: resource {resource_type}#{resource_id} not found")
            return 0

        return handler(comment, resource)

    # ------------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------------

    def get_context(self, comment, resource) -> Dict[str, str]:
        return {
            'site_name': get_site_name(comment.site),
            'resource_id': resource.pk,
            'resource_title': get_resource_title(resource),
            'resource_url': get_resource_url(resource, comment.site),
            'comment_author': comment.author_name,
            'comment_body': comment.body,
        }

    def get_templates(self, notification_type) -> Tuple[str, str]:
        subject_setting, body_setting = TEMPLATE_SETTINGS[notification_type]
        default_subject, default_body = DEFAULT_TEMPLATES[notification_type]
        return (
            getattr(comments_settings, subject_setting) or default_subject,
            getattr(comments_settings, body_setting) or default_body,
        )

    def render(self, notification_type, context) -> Tuple[str, str]:
        subject_template, body_template = self.get_templates(notification_type)
        # Header injection guard
        subject = ' '.join(render_template(subject_template, context).splitlines())
        return subject, render_template(body_template, context)

    # ------------------------------------------------------------------------
    # Notification types
    # ------------------------------------------------------------------------

    def notify_subscribers(self, comment, resource) -> int:
        subject, body = self.render(SUBSCRIBERS, self.get_context(comment, resource))
        subscriptions = CommentSubscription.objects.for_resource(resource).select_related('owner')

        sent = 0
        for subscription in subscriptions:
            email = subscription.owner.email
            if not email:
                continue
            if self.send(email, subject, body):
                sent += 1
        logger.info(f"Sent {sent} subscriber notifications for comment {comment.pk}")
        return sent

    def notify_moderators(self, comment, resource) -> int:
        context = self.get_context(comment, resource)
        context.update({
            'resource_url': get_resource_admin_url(resource, comment.site),
            'comment_email': comment.email or 'N/A',
        })
        return self._send_to_moderators(MODERATORS, comment, context)

    def notify_flagged(self, comment, resource) -> int:
        context = self.get_context(comment, resource)
        context.update({
            'comment_email': comment.email or 'N/A',
            'admin_url': get_comment_admin_url(comment, comment.site),
        })
        return self._send_to_moderators(FLAGGED, comment, context)

    def _send_to_moderators(self, notification_type, comment, context) -> int:
        recipients = get_moderator_emails()
        if not recipients:
            logger.debug(f"No moderator addresses configured for {notification_type} notification")
            return 0

        subject, body = self.render(notification_type, context)
        sent = 0
        for email in recipients:
            if self.send(email, subject, body):
                sent += 1
        logger.info(f"Sent {sent} {notification_type} notifications for comment {comment.pk}")
        return sent

    def deliver(self, recipient, subject, body):
        """
        Send one e-mail.

        Raises:
            NotificationError: the mail backend failed.
        """
        try:
            send_mail(
                subject=subject,
                message=body,
                from_email=self.from_email,
                recipient_list=[recipient],
                fail_silently=False,
                connection=self.connection,
            )
        except Exception as e:
            raise NotificationError(f"Failed to send notification '{subject}' to {recipient}: {e}") from e

    def send(self, recipient, subject, body) -> bool:
        """
        Send one e-mail. Failures are logged and reported as False.
        """
        try:
            self.deliver(recipient, subject, body)
        except NotificationError as e:
            logger.error(e.message)
            return False
        return True


def schedule_notification(notification_type, comment) -> bool:
    """
    Schedule a notification job for a comment.

    Scheduling failures are logged and never propagate.

    Returns:
        True when the job was handed to the dispatcher.
    """
    if notification_type not in NOTIFICATION_TYPES:
        logger.error(f"Refusing to schedule unknown notification type: {notification_type}")
        return False

    if not comment.content_type_id or not comment.object_id:
        logger.warning(f"Comment {comment.pk} has no resource, {notification_type} notification skipped")
        return False

    args = {
        'notification_type': notification_type,
        'comment_id': comment.pk,
        'resource_type': comment.resource_type,
        'resource_id': comment.object_id,
    }
    try:
        dispatcher = comments_settings.JOB_DISPATCHER
        dispatcher(JOB_NAME, args)
    except Exception as e:
        logger.error(f"Failed to schedule {notification_type} notification for comment {comment.pk}: {e}")
        return False

    logger.debug(f"Scheduled {notification_type} notification for comment {comment.pk}")
    return True
