from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string
from django.utils.translation import gettext_lazy as _

# Default settings that can be overridden through settings.RESOURCE_COMMENTS
DEFAULTS = {
    # ============================================================================
    # RESOURCES
    # ============================================================================

    # Models that can be commented on.
    # Format: ['app_label.ModelName'] or dotted module paths
    # ('myapp.models.Item').
    'COMMENTABLE_MODELS': [],

    # Mapping of group name -> list of collection ids, used by the `group`
    # search filter.
    'COMMENT_GROUPS': {},

    # ============================================================================
    # MODERATION
    # ============================================================================

    # Users belonging to these groups are treated as moderators: their
    # comments are auto-approved and they can see sensitive data.
    'AUTO_APPROVE_GROUPS': ['Moderators', 'Reviewers', 'Editors'],

    # Whether comments from anonymous visitors must be approved first
    'PUBLIC_REQUIRE_MODERATION': False,

    # Whether comments from registered (non moderator) users must be approved
    'USER_REQUIRE_MODERATION': False,

    # Whether owners may edit the body of their own comments
    'USER_ALLOW_EDIT': True,

    # ============================================================================
    # SUBMISSION
    # ============================================================================

    # Allow unauthenticated visitors to post comments
    'ALLOW_ANONYMOUS': True,

    # Identity modes a registered user may select in addition to 'account'.
    # Options: 'alias', 'anonymous'
    'IDENTITY_MODES': [],

    # When set, anonymous visitors must accept it before posting.
    # Can be overridden per site through SITE_SETTINGS.
    'LEGAL_TEXT': '',

    # Require the simple "a + b" arithmetic challenge
    'SIMPLE_ANTISPAM': False,

    # Maximum allowed length for the comment body (None = unlimited)
    'MAX_COMMENT_LENGTH': 3000,

    # ============================================================================
    # RATE LIMITING
    # ============================================================================

    # Maximum comments from one IP within RATE_LIMIT_PERIOD (0 = disabled)
    'RATE_LIMIT_COUNT': 0,

    # Trailing window in minutes
    'RATE_LIMIT_PERIOD': 60,

    # ============================================================================
    # SPAM DETECTION
    # ============================================================================

    # Enable the built-in word list check
    'SPAM_DETECTION_ENABLED': False,

    # List of words/phrases that mark a comment as spam
    'SPAM_WORDS': [],

    # Custom spam detector (optional)
    # Callable or dotted path, receives a dict with user_ip, user_agent,
    # comment_content, comment_author, comment_author_email,
    # comment_author_url and permalink. Returns a bool or (is_spam, reason).
    'SPAM_DETECTOR': None,

    # ============================================================================
    # NOTIFICATIONS
    # ============================================================================

    # Addresses notified on every new comment and on flagged comments.
    # List or newline separated string. Empty disables the notifications.
    'MODERATOR_NOTIFICATION_EMAILS': [],

    # Notify subscribers when a comment gets approved
    'NOTIFY_SUBSCRIBERS': False,

    # Notify moderators when a comment is flagged
    'NOTIFY_ON_FLAG': True,

    # Templates (None = built-in default). Placeholders use {name} syntax.
    'EMAIL_SUBSCRIBER_SUBJECT': None,
    'EMAIL_SUBSCRIBER_BODY': None,
    'EMAIL_MODERATOR_SUBJECT': None,
    'EMAIL_MODERATOR_BODY': None,
    'EMAIL_FLAGGED_SUBJECT': None,
    'EMAIL_FLAGGED_BODY': None,

    # Site name and domain used in e-mails (None = django.contrib.sites)
    'SITE_NAME': None,
    'SITE_DOMAIN': None,
    'USE_HTTPS': False,

    # Sender address (None = settings.DEFAULT_FROM_EMAIL)
    'DEFAULT_FROM_EMAIL': None,

    # Callable (job_name, args) used to schedule background jobs
    'JOB_DISPATCHER': 'resource_comments.tasks.dispatch_with_celery',

    # ============================================================================
    # API PAGINATION
    # ============================================================================

    'PAGE_SIZE': 20,
    'PAGE_SIZE_QUERY_PARAM': 'page_size',
    'MAX_PAGE_SIZE': 100,

    # ============================================================================
    # SITES & LOGGING
    # ============================================================================

    # Per-site overrides: {site_id: {'LEGAL_TEXT': '...'}}
    'SITE_SETTINGS': {},

    'LOGGER_NAME': 'resource_comments',
}

IDENTITY_MODE_CHOICES = ('alias', 'anonymous')


class CommentsSettings:
    """
    A settings object for resource-comments that handles default vs user settings.

    User settings are read from ``settings.RESOURCE_COMMENTS`` on every access
    unless an explicit dict is given, so ``override_settings`` is honoured.

    Usage:
        from resource_comments.conf import comments_settings

        max_length = comments_settings.MAX_COMMENT_LENGTH
        legal_text = comments_settings.get_for_site('LEGAL_TEXT', site)
    """

    def __init__(self, user_settings=None, defaults=None):
        self._user_settings = user_settings
        self.defaults = defaults or DEFAULTS

    @property
    def user_settings(self):
        if self._user_settings is not None:
            return self._user_settings
        return getattr(settings, 'RESOURCE_COMMENTS', {}) or {}

    def __getattr__(self, attr):
        if attr not in self.defaults:
            raise AttributeError(f"Invalid resource-comments setting: '{attr}'")

        value = self.user_settings.get(attr, self.defaults[attr])

        if attr == 'SPAM_DETECTOR' and value:
            return self._load_callable(attr, value)

        if attr == 'JOB_DISPATCHER' and value:
            return self._load_callable(attr, value)

        return value

    def get_for_site(self, attr, site=None):
        """
        Read a setting for a given site, falling back to the global value.
        """
        if site is not None and getattr(site, 'pk', None) is not None:
            site_settings = self.SITE_SETTINGS or {}
            overrides = site_settings.get(site.pk) or site_settings.get(str(site.pk)) or {}
            if attr in overrides:
                return overrides[attr]
        return getattr(self, attr)

    def _load_callable(self, attr, path):
        if callable(path):
            return path

        try:
            func = import_string(path)
        except ImportError as e:
            raise ImproperlyConfigured(f"Could not import {attr} '{path}': {e}")

        if not callable(func):
            raise ImproperlyConfigured(f"{attr} must be callable, got {type(func)}")
        return func

    @property
    def as_dict(self):
        """
        Return all settings as a dictionary.
        """
        return {key: getattr(self, key) for key in self.defaults.keys()}

    def validate(self):
        """
        Validate settings for common configuration errors.
        Raises ImproperlyConfigured for invalid settings.
        """
        errors = []

        invalid_modes = [m for m in self.IDENTITY_MODES if m not in IDENTITY_MODE_CHOICES]
        if invalid_modes:
            errors.append(
                f"IDENTITY_MODES may only contain {list(IDENTITY_MODE_CHOICES)}, "
                f"got {invalid_modes}"
            )

        if self.RATE_LIMIT_COUNT and (self.RATE_LIMIT_PERIOD or 0) <= 0:
            errors.append(
                f"RATE_LIMIT_PERIOD must be positive when RATE_LIMIT_COUNT is set, "
                f"got {self.RATE_LIMIT_PERIOD}"
            )

        if self.MAX_COMMENT_LENGTH is not None and self.MAX_COMMENT_LENGTH <= 0:
            errors.append(f"MAX_COMMENT_LENGTH must be positive, got {self.MAX_COMMENT_LENGTH}")

        if self.PAGE_SIZE and self.PAGE_SIZE <= 0:
            errors.append(f"PAGE_SIZE must be positive, got {self.PAGE_SIZE}")

        if self.MAX_PAGE_SIZE and self.MAX_PAGE_SIZE < self.PAGE_SIZE:
            errors.append(
                f"MAX_PAGE_SIZE ({self.MAX_PAGE_SIZE}) must be >= "
                f"PAGE_SIZE ({self.PAGE_SIZE})"
            )

        if not isinstance(self.COMMENT_GROUPS, dict):
            errors.append("COMMENT_GROUPS must be a dict of group name -> collection ids")

        if errors:
            raise ImproperlyConfigured(
                "Invalid resource-comments configuration:\n" +
                "\n".join(f"  - {error}" for error in errors)
            )


comments_settings = CommentsSettings(defaults=DEFAULTS)

# Messages shared between the pipeline and the API
MODERATION_MESSAGE = _('Your comment is awaiting moderation.')
