from django.utils.translation import gettext_lazy as _


class CommentsError(Exception):
    """Base exception for all resource-comments errors."""
    status_code = 500
    default_message = _('An internal error occurred.')

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(CommentsError):
    """
    Missing or invalid request context: no post data, no IP, no user agent,
    an unresolvable resource or an identity that may not perform the action.

    Always reported generically.
    """
    status_code = 403
    default_message = _('Unauthorized access.')


class CommentValidationError(CommentsError):
    """
    Business rule or field validation failure, with field level detail.
    """
    status_code = 400
    default_message = _('There is issue in your comment.')

    def __init__(self, message=None, errors=None):
        self.errors = errors or {}
        super().__init__(message)

    @classmethod
    def from_django(cls, exc, message=None):
        """Build from a django.core.exceptions.ValidationError."""
        if hasattr(exc, 'error_dict'):
            errors = {field: [str(m) for m in messages] for field, messages in exc.message_dict.items()}
        else:
            errors = {'non_field_errors': [str(m) for m in exc.messages]}
        return cls(message=message, errors=errors)


class RateLimitExceeded(CommentsError):
    """
    Exception raised when an IP exceeds the comment rate limit.
    """
    status_code = 429
    default_message = _('Too many comments. Please wait before posting again.')

    def __init__(self, message=None, retry_after=None):
        self.retry_after = retry_after
        super().__init__(message)


class CommentNotFound(CommentsError):
    status_code = 404
    default_message = _('Comment not found.')


class ResourceNotFound(CommentsError):
    """
    Raised by the resource lookup when a resource cannot be resolved.
    """
    status_code = 404
    default_message = _('Resource not found.')


class NotificationError(CommentsError):
    """
    Mail sending or job scheduling failure. Logged, never surfaced to the
    operation that triggered it.
    """
    status_code = 500
    default_message = _('Notification could not be sent.')
