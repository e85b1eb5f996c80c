import ipaddress
import logging
import re
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlsplit

from resource_comments.conf import comments_settings

logger = logging.getLogger(comments_settings.LOGGER_NAME)

# Stored when the client address cannot be determined
INVALID_IP = '::'

_PLACEHOLDER_RE = re.compile(r'\{(\w+)\}')


def normalize_website(url: Optional[str]) -> str:
    """
    Keep scheme, host, port and path of a url, dropping credentials, query
    string and fragment. Urls without scheme or host normalize to ''.

        >>> normalize_website('https://example.com/page?tracking=123')
        'https://example.com/page'
    """
    url = (url or '').strip()
    if not url:
        return ''
    try:
        parts = urlsplit(url)
    except ValueError:
        return ''
    host = parts.netloc.rpartition('@')[2]
    if not parts.scheme or not host:
        return ''
    return f'{parts.scheme}://{host}{parts.path}'


def get_client_ip(request) -> str:
    """
    Return the client address of a request, or INVALID_IP.
    """
    remote_addr = (request.META.get('REMOTE_ADDR') or '').strip()
    try:
        return str(ipaddress.ip_address(remote_addr))
    except ValueError:
        return INVALID_IP


def get_user_agent(request) -> str:
    return (request.META.get('HTTP_USER_AGENT') or '').strip()


def is_moderator(user) -> bool:
    """
    Moderators are staff, holders of the can_moderate_comments permission or
    members of one of AUTO_APPROVE_GROUPS.
    """
    if not user or not getattr(user, 'is_authenticated', False):
        return False
    if user.is_staff or user.is_superuser:
        return True
    if user.has_perm('resource_comments.can_moderate_comments'):
        return True
    groups = comments_settings.AUTO_APPROVE_GROUPS
    return bool(groups) and user.groups.filter(name__in=groups).exists()


def parse_bool(value) -> bool:
    """Query string boolean: false, 'false', 0 and '0' are false."""
    if isinstance(value, str):
        return value.strip().lower() not in ('false', '0')
    return value not in (False, 0)


def parse_email_list(value) -> List[str]:
    """Accept a list of addresses or a newline separated string."""
    if not value:
        return []
    if isinstance(value, str):
        value = value.splitlines()
    return [email.strip() for email in value if email and email.strip()]


def render_template(template: str, context: Dict[str, Any]) -> str:
    """
    Replace {placeholder} tokens with values from context.
    Unknown placeholders are left intact.
    """
    def replace(match):
        key = match.group(1)
        if key in context:
            return str(context[key])
        return match.group(0)

    return _PLACEHOLDER_RE.sub(replace, str(template))


def check_comment_for_spam(payload: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Check a submission for spam.

    Args:
        payload: dict with user_ip, user_agent, comment_content,
            comment_author, comment_author_email, comment_author_url and
            permalink.

    Returns:
        Tuple of (is_spam: bool, reason: Optional[str])
    """
    detector = comments_settings.SPAM_DETECTOR
    if detector:
        try:
            result = detector(payload)
        except Exception as e:
            # An unavailable detector sends the comment to moderation
            logger.error(f"Spam detector failed: {e}")
            return True, 'Spam detector failure'

        if isinstance(result, tuple):
            is_spam, reason = result
        else:
            is_spam, reason = bool(result), None
        if is_spam:
            logger.info(f"Spam detector flagged comment from {payload.get('user_ip')}: {reason}")
            return True, reason or 'Detected by spam detector'

    if comments_settings.SPAM_DETECTION_ENABLED and comments_settings.SPAM_WORDS:
        content_lower = (payload.get('comment_content') or '').lower()
        for word in comments_settings.SPAM_WORDS:
            if word.lower() in content_lower:
                logger.info(f"Spam detected: content contains '{word}'")
                return True, f"Contains spam keyword: {word}"

    return False, None
