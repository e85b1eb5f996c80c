from django.conf import settings
from django.contrib.contenttypes.fields import GenericForeignKey
from django.contrib.contenttypes.models import ContentType
from django.core.exceptions import ValidationError
from django.core.validators import URLValidator, validate_email
from django.db import models, transaction
from django.utils import timezone
from django.utils.translation import gettext_lazy as _
import logging

from .conf import comments_settings
from .managers import CommentManager, CommentSubscriptionManager
from .utils import INVALID_IP, normalize_website

logger = logging.getLogger(comments_settings.LOGGER_NAME)


class AbstractCommentBase(models.Model):
    """Base class with timestamp fields."""
    created_at = models.DateTimeField(_('Created at'), default=timezone.now, editable=False, db_index=True)
    updated_at = models.DateTimeField(_('Modified at'), auto_now=True)

    class Meta:
        abstract = True


class Comment(AbstractCommentBase):
    """
    A comment attached to a resource.

    The moderation flags ``approved``, ``flagged`` and ``spam`` are independent
    booleans. Replies reference their parent by id; ``children`` is the reverse
    relation.
    """

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='resource_comments',
        verbose_name=_('Owner')
    )

    # The resource may be deleted after the comment was posted
    content_type = models.ForeignKey(
        ContentType,
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='+',
        verbose_name=_('Resource type')
    )
    object_id = models.CharField(_('Resource ID'), max_length=255, blank=True, db_index=True)
    resource = GenericForeignKey('content_type', 'object_id')

    site = models.ForeignKey(
        'sites.Site',
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='+',
        verbose_name=_('Site')
    )
    path = models.CharField(_('Path'), max_length=1024, blank=True)

    # Validated in clean(): only required to be an address when there is no owner
    email = models.CharField(_('Email'), max_length=254, blank=True)
    name = models.CharField(_('Name'), max_length=190, blank=True)
    website = models.CharField(_('Website'), max_length=760, blank=True)
    ip = models.GenericIPAddressField(_('IP address'), default=INVALID_IP)
    user_agent = models.TextField(_('User agent'), blank=True)
    body = models.TextField(_('Body'))

    approved = models.BooleanField(_('Approved'), default=False, db_index=True)
    flagged = models.BooleanField(_('Flagged'), default=False, db_index=True)
    spam = models.BooleanField(_('Spam'), default=False, db_index=True)

    parent = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='children',
        verbose_name=_('Parent')
    )

    edited_at = models.DateTimeField(_('Edited at'), null=True, blank=True)
    history = models.JSONField(_('History'), default=list, blank=True)

    objects = CommentManager()

    class Meta:
        ordering = ['-created_at']
        verbose_name = _('Comment')
        verbose_name_plural = _('Comments')
        indexes = [
            models.Index(fields=['content_type', 'object_id'], name='rc_comment_resource_idx'),
            models.Index(fields=['ip', 'created_at'], name='rc_comment_ip_created_idx'),
            models.Index(fields=['approved', 'spam'], name='rc_comment_moderation_idx'),
        ]
        permissions = [
            ('can_moderate_comments', _('Can moderate comments')),
        ]

    def __str__(self):
        return _("Comment #{pk} by {author}").format(pk=self.pk, author=self.author_name)

    # ------------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------------

    def clean(self):
        """
        Persistence level validation.
        The parent rule is also checked by the submission pipeline.
        """
        super().clean()
        errors = {}

        self.website = normalize_website(self.website)
        if self.website:
            try:
                URLValidator()(self.website)
            except ValidationError:
                errors['website'] = _('The website must be a valid url.')

        if not self.owner_id:
            try:
                validate_email(self.email)
            except ValidationError:
                errors['email'] = _('Invalid email: {email}').format(email=self.email)

        if not self.ip or self.ip == INVALID_IP:
            errors['ip'] = _('The ip cannot be empty.')

        if not (self.user_agent or '').strip():
            errors['user_agent'] = _('The user agent cannot be empty.')

        if not (self.body or '').strip():
            errors['body'] = _('The comment cannot be empty.')

        if self.parent_id and self._state.adding and not self.parent.approved:
            errors['parent'] = _('Cannot reply to a comment that is not yet approved.')

        if self.edited_at and self.created_at and self.edited_at < self.created_at:
            errors['edited_at'] = _('The edition date cannot precede the creation date.')

        if errors:
            raise ValidationError(errors)

    def save(self, *args, **kwargs):
        if self._state.adding and not kwargs.pop('skip_validation', False):
            self.clean()
        else:
            kwargs.pop('skip_validation', None)
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        """
        Delete the comment, re-parenting its replies to its own parent.
        """
        with transaction.atomic():
            # The parent may have been deleted since this instance was loaded
            self.refresh_from_db(fields=['parent'])
            moved = type(self).objects.filter(parent_id=self.pk).update(parent_id=self.parent_id)
            if moved:
                logger.info(f"Re-parented {moved} replies of comment {self.pk} to {self.parent_id}")
            return super().delete(*args, **kwargs)

    # ------------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------------

    def add_history(self, action, user=None, data=None):
        """
        Append an entry to the audit history. Entries are never rewritten.
        """
        entry = {
            'action': action,
            'timestamp': timezone.now().isoformat(),
            'user_id': getattr(user, 'pk', None),
            'data': data or {},
        }
        self.history = list(self.history or []) + [entry]
        return entry

    # ------------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------------

    @property
    def resource_type(self):
        if not self.content_type_id:
            return None
        return f'{self.content_type.app_label}.{self.content_type.model}'

    @property
    def resource_id(self):
        return self.object_id or None

    @property
    def author_name(self):
        # Name is stored at submission time, blank in anonymous identity mode
        return self.name or _('Anonymous')

    @property
    def children_ids(self):
        return [child.pk for child in self.children.all()]

    @property
    def is_reply(self):
        return self.parent_id is not None


class CommentSubscription(models.Model):
    """
    A standing opt-in by a user to be notified of comments on a resource.
    """

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='comment_subscriptions',
        verbose_name=_('Owner')
    )
    content_type = models.ForeignKey(
        ContentType,
        on_delete=models.CASCADE,
        related_name='+',
        verbose_name=_('Resource type')
    )
    object_id = models.CharField(_('Resource ID'), max_length=255, db_index=True)
    resource = GenericForeignKey('content_type', 'object_id')
    created_at = models.DateTimeField(_('Created at'), default=timezone.now, editable=False)

    objects = CommentSubscriptionManager()

    class Meta:
        ordering = ['-created_at']
        verbose_name = _('Comment subscription')
        verbose_name_plural = _('Comment subscriptions')
        constraints = [
            models.UniqueConstraint(
                fields=['owner', 'content_type', 'object_id'],
                name='unique_comment_subscription',
                violation_error_message=_('This user has already subscribed to this resource.'),
            ),
        ]

    def __str__(self):
        return _("Subscription of {owner} to {type}#{id}").format(
            owner=self.owner, type=self.content_type, id=self.object_id
        )

    def clean(self):
        super().clean()
        if not self.owner_id or not self.content_type_id:
            return
        duplicates = type(self).objects.filter(
            owner_id=self.owner_id,
            content_type_id=self.content_type_id,
            object_id=self.object_id,
        ).exclude(pk=self.pk)
        if duplicates.exists():
            raise ValidationError({
                'owner': _('This user has already subscribed to this resource.')
            })
