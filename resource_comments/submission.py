"""
Comment submission pipeline.

``submit_comment`` validates and classifies an incoming comment, persists it
and triggers the side effects (auto-subscription, moderator notification).
``edit_comment`` and ``set_flagged`` cover the other user facing operations.

Validation runs in a fixed order and stops at the first failure:

1. honeypot
2. arithmetic challenge (SIMPLE_ANTISPAM)
3. client IP
4. rate limit
5. user agent
6. resource
7. parent comment
8. identity
9. body
10. spam classification
11. approval
"""
import enum
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Mapping, Optional

from django.contrib.contenttypes.models import ContentType
from django.contrib.sites.models import Site
from django.contrib.sites.shortcuts import get_current_site
from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from .conf import comments_settings
from .exceptions import (
    CommentNotFound,
    CommentValidationError,
    RateLimitExceeded,
    ResourceNotFound,
    Unauthorized,
)
from .models import Comment
from .notifications import MODERATORS, get_moderator_emails, schedule_notification
from .resources import get_resource, get_resource_url
from .signals import comment_edited, comment_submitted, flag_comment, safe_send, unflag_comment
from .subscriptions import is_subscribed, subscribe
from .utils import (
    INVALID_IP,
    check_comment_for_spam,
    get_client_ip,
    get_user_agent,
    is_moderator,
    normalize_website,
    parse_bool,
)

logger = logging.getLogger(comments_settings.LOGGER_NAME)

HONEYPOT_FIELD = 'check'


class IdentityMode(str, enum.Enum):
    """How a registered user appears on a comment."""
    ACCOUNT = 'account'
    ALIAS = 'alias'
    ANONYMOUS = 'anonymous'


@dataclass(frozen=True)
class ResolvedIdentity:
    owner: Any
    name: str
    email: str
    mode: Optional[IdentityMode] = None


@dataclass
class SubmissionContext:
    ip: str = INVALID_IP
    user_agent: str = ''
    user: Any = None
    site: Optional[Site] = None
    cache: Any = None

    @classmethod
    def from_request(cls, request):
        from .cache import get_request_cache

        site = get_current_site(request)
        user = getattr(request, 'user', None)
        return cls(
            ip=get_client_ip(request),
            user_agent=get_user_agent(request),
            user=user if user is not None and user.is_authenticated else None,
            site=site if isinstance(site, Site) else None,
            cache=get_request_cache(request),
        )


@dataclass
class SubmissionResult:
    comment: Comment
    moderation: bool


def _fail(field, message):
    raise CommentValidationError(message=message, errors={field: [str(message)]})


def _clean_text(data, key):
    value = data.get(key)
    if value is None:
        return ''
    return str(value).strip()


# ============================================================================
# INDIVIDUAL CHECKS
# ============================================================================

def check_rate_limit(ip):
    """
    Reject when ``ip`` already posted RATE_LIMIT_COUNT comments within the
    last RATE_LIMIT_PERIOD minutes. A failing count lets the comment through.
    """
    max_comments = comments_settings.RATE_LIMIT_COUNT or 0
    if max_comments <= 0:
        return

    period = comments_settings.RATE_LIMIT_PERIOD
    since = timezone.now() - timedelta(minutes=period)
    try:
        count = Comment.objects.from_ip_since(ip, since).count()
    except DatabaseError as e:
        logger.error(f"Rate limit check failed for {ip}, allowing comment: {e}")
        return

    if count >= max_comments:
        logger.warning(f"Rate limit exceeded for IP {ip}: {count} comments in {period} minutes")
        raise RateLimitExceeded(retry_after=period * 60)


def check_simple_antispam(data):
    if not comments_settings.SIMPLE_ANTISPAM:
        return
    try:
        a = int(data.get('antispam_a'))
        b = int(data.get('antispam_b'))
        answer = int(data.get('antispam_answer'))
    except (TypeError, ValueError):
        _fail('antispam_answer', _('Are you really a robot?'))
    if a + b != answer:
        _fail('antispam_answer', _('Are you really a robot?'))


def resolve_parent(parent_id, resource):
    if parent_id in (None, ''):
        return None
    try:
        parent = Comment.objects.get(pk=parent_id)
    except (Comment.DoesNotExist, ValueError, TypeError):
        _fail('parent', _('The parent comment does not exist.'))
    if not parent.approved:
        _fail('parent', _('Cannot reply to a comment that is not yet approved.'))
    if parent.content_type_id != ContentType.objects.get_for_model(resource).pk or parent.object_id != str(resource.pk):
        _fail('parent', _('The parent comment belongs to another resource.'))
    return parent


def resolve_identity(data: Mapping, user, site=None) -> ResolvedIdentity:
    """
    Resolve who is posting into a (owner, name, email) triple.

    Raises:
        Unauthorized: anonymous commenting is disabled.
        CommentValidationError: unknown identity mode or missing legal
            agreement.
    """
    if user is not None:
        try:
            mode = IdentityMode(data.get('identity_mode') or IdentityMode.ACCOUNT)
        except ValueError:
            _fail('identity_mode', _('Invalid identity mode.'))

        if mode is not IdentityMode.ACCOUNT and mode.value not in comments_settings.IDENTITY_MODES:
            _fail('identity_mode', _('This identity mode is not allowed.'))

        if mode is IdentityMode.ALIAS:
            return ResolvedIdentity(user, _clean_text(data, 'name'), _clean_text(data, 'email'), mode)
        if mode is IdentityMode.ANONYMOUS:
            return ResolvedIdentity(user, '', '', mode)
        return ResolvedIdentity(
            user,
            user.get_full_name() or user.get_username(),
            user.email or '',
            mode,
        )

    if not comments_settings.get_for_site('ALLOW_ANONYMOUS', site):
        raise Unauthorized()

    if comments_settings.get_for_site('LEGAL_TEXT', site) and not parse_bool(data.get('legal_agreement') or False):
        _fail('legal_agreement', _('You should accept the legal agreement.'))

    return ResolvedIdentity(None, _clean_text(data, 'name'), _clean_text(data, 'email'))


def check_body(body):
    if not body:
        _fail('body', _('The comment cannot be empty.'))
    max_length = comments_settings.MAX_COMMENT_LENGTH
    if max_length and len(body) > max_length:
        _fail('body', _('Comment exceeds maximum length of {max_length} characters.').format(max_length=max_length))


def determine_approval(user, is_spam=False) -> bool:
    """
    Spam is never approved. Moderators are always approved. Other users
    depend on the USER_/PUBLIC_REQUIRE_MODERATION settings.
    """
    if is_spam:
        return False
    if user is not None and getattr(user, 'is_authenticated', False):
        if is_moderator(user):
            return True
        return not comments_settings.USER_REQUIRE_MODERATION
    return not comments_settings.PUBLIC_REQUIRE_MODERATION


def _spam_payload(body, ip, user_agent, name='', email='', website='', permalink=''):
    return {
        'user_ip': ip,
        'user_agent': user_agent,
        'comment_content': body,
        'comment_author': name,
        'comment_author_email': email,
        'comment_author_url': website,
        'permalink': permalink,
    }


def _notify_moderators(comment):
    if get_moderator_emails():
        schedule_notification(MODERATORS, comment)


# ============================================================================
# OPERATIONS
# ============================================================================

def submit_comment(data: Mapping, context: SubmissionContext) -> SubmissionResult:
    """
    Validate, classify and persist a new comment.

    Raises:
        Unauthorized, RateLimitExceeded, CommentValidationError
    """
    if _clean_text(data, HONEYPOT_FIELD):
        logger.info(f"Honeypot filled from {context.ip}, comment rejected")
        raise Unauthorized()

    check_simple_antispam(data)

    if not context.ip or context.ip == INVALID_IP:
        raise Unauthorized()

    check_rate_limit(context.ip)

    if not context.user_agent:
        raise Unauthorized(_('Unauthorized access : no user agent.'))

    try:
        resource = get_resource(data.get('resource_type'), data.get('resource_id'))
    except ResourceNotFound:
        raise Unauthorized()

    parent = resolve_parent(data.get('parent'), resource)
    identity = resolve_identity(data, context.user, context.site)

    body = _clean_text(data, 'body')
    check_body(body)

    website = '' if identity.mode is IdentityMode.ANONYMOUS else normalize_website(data.get('website'))

    is_spam, reason = check_comment_for_spam(_spam_payload(
        body, context.ip, context.user_agent,
        name=identity.name, email=identity.email, website=website,
        permalink=get_resource_url(resource, context.site),
    ))
    approved = determine_approval(context.user, is_spam)

    comment = Comment(
        owner=identity.owner,
        content_type=ContentType.objects.get_for_model(resource),
        object_id=str(resource.pk),
        site=context.site,
        path=_clean_text(data, 'path')[:1024],
        name=identity.name,
        email=identity.email,
        website=website,
        ip=context.ip,
        user_agent=context.user_agent,
        body=body,
        parent=parent,
        approved=approved,
        flagged=False,
        spam=is_spam,
    )
    comment.add_history('created', user=context.user, data={'spam_reason': reason} if reason else None)

    try:
        comment.full_clean()
    except ValidationError as e:
        raise CommentValidationError.from_django(e)

    comment.save(skip_validation=True)
    logger.info(f"Comment {comment.pk} created on {comment.resource_type}#{comment.object_id} (approved={approved}, spam={is_spam})")
    safe_send(comment_submitted, sender=Comment, comment=comment, user=context.user)

    if identity.owner is not None:
        try:
            if not is_subscribed(identity.owner, resource, cache=context.cache):
                subscribe(identity.owner, resource, cache=context.cache)
        except Exception as e:
            logger.warning(f"Auto-subscription failed for user {identity.owner.pk} on comment {comment.pk}: {e}")

    _notify_moderators(comment)

    return SubmissionResult(comment=comment, moderation=not approved)


def can_edit(comment, user) -> bool:
    if user is None or not getattr(user, 'is_authenticated', False):
        return False
    if is_moderator(user):
        return True
    return comments_settings.USER_ALLOW_EDIT and comment.owner_id == user.pk


def edit_comment(comment, body, user, context: Optional[SubmissionContext] = None) -> SubmissionResult:
    """
    Replace the body of a comment.

    Approval and spam classification are evaluated again, as at creation.
    """
    if not can_edit(comment, user):
        raise Unauthorized()

    body = (body or '').strip()
    if not body:
        _fail('body', _('No text submitted.'))
    if body == comment.body:
        _fail('body', _('Text submitted is the same than the existing one.'))
    check_body(body)

    is_spam, reason = check_comment_for_spam(_spam_payload(
        body,
        context.ip if context else comment.ip,
        context.user_agent if context else comment.user_agent,
        name=comment.name, email=comment.email, website=comment.website,
    ))

    previous_body = comment.body
    comment.body = body
    comment.spam = is_spam
    comment.approved = determine_approval(user, is_spam)
    comment.edited_at = timezone.now()
    comment.add_history('edited', user=user, data={'previous_body': previous_body})

    try:
        comment.full_clean()
    except ValidationError as e:
        raise CommentValidationError.from_django(e)

    with transaction.atomic():
        comment.save(update_fields=['body', 'spam', 'approved', 'edited_at', 'history', 'updated_at'])
    logger.info(f"Comment {comment.pk} edited by user {user.pk} (approved={comment.approved}, spam={is_spam})")
    safe_send(comment_edited, sender=Comment, comment=comment, user=user)

    _notify_moderators(comment)

    return SubmissionResult(comment=comment, moderation=not comment.approved)


def set_flagged(comment_id, flagged, user=None, queryset=None) -> Comment:
    """
    Set the flagged state of a comment.

    The comment is looked up in ``queryset`` (every comment by default), so
    callers pass the comments the user may see.

    Raises:
        CommentNotFound: no comment with this id in the queryset.
    """
    if comment_id in (None, ''):
        raise CommentNotFound()
    if queryset is None:
        queryset = Comment.objects.all()
    try:
        comment = queryset.get(pk=comment_id)
    except (Comment.DoesNotExist, ValueError, TypeError):
        raise CommentNotFound()

    if flagged:
        return flag_comment(comment, user=user)
    return unflag_comment(comment, user=user)
