import logging

from django.http import Http404
from django.utils.translation import gettext_lazy as _
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import exceptions, mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated

from ..cache import get_request_cache
from ..conf import MODERATION_MESSAGE, comments_settings
from ..drf_integration import CommentPagination
from ..exceptions import CommentsError, CommentValidationError, RateLimitExceeded, Unauthorized
from ..models import Comment, CommentSubscription
from ..resources import get_resource
from ..signals import (
    approve_comment,
    delete_comment,
    mark_not_spam,
    mark_spam,
    unapprove_comment,
)
from ..submission import SubmissionContext, edit_comment, set_flagged, submit_comment
from ..subscriptions import apply_subscription_action, is_subscribed
from ..utils import is_moderator
from .filtersets import CommentFilterSet, CommentSubscriptionFilterSet
from .permissions import CommentPermission
from .responses import error, fail, success
from .serializers import (
    CommentEditSerializer,
    CommentSerializer,
    CommentSubscriptionSerializer,
    ResourceReferenceSerializer,
)

logger = logging.getLogger(comments_settings.LOGGER_NAME)


class EnvelopeMixin:
    """
    Convert every exception raised by a view into the success/fail/error
    envelope. Unexpected errors are logged and reported generically.
    """

    def handle_exception(self, exc):
        if isinstance(exc, RateLimitExceeded):
            headers = {'Retry-After': str(exc.retry_after)} if exc.retry_after else None
            return fail(message=exc.message, status=exc.status_code, headers=headers)

        if isinstance(exc, CommentValidationError):
            return fail(exc.errors, message=exc.message, status=exc.status_code)

        if isinstance(exc, Unauthorized):
            return error(exc.message, status=exc.status_code)

        if isinstance(exc, CommentsError) and exc.status_code < 500:
            return fail(message=exc.message, status=exc.status_code)

        if isinstance(exc, Http404):
            return fail(message=_('Not found.'), status=status.HTTP_404_NOT_FOUND)

        if isinstance(exc, exceptions.ValidationError):
            return fail(exc.detail, message=_('Invalid data.'), status=exc.status_code)

        if isinstance(exc, (exceptions.NotAuthenticated, exceptions.AuthenticationFailed)):
            auth_header = self.get_authenticate_header(self.request)
            if auth_header:
                return error(exc.detail, status=exc.status_code, headers={'WWW-Authenticate': auth_header})
            return error(exc.detail, status=status.HTTP_403_FORBIDDEN)

        if isinstance(exc, exceptions.APIException):
            return error(exc.detail, status=exc.status_code)

        logger.exception(f"Unexpected error in {self.__class__.__name__}: {exc}")
        return error(_('An internal error occurred.'), status=status.HTTP_500_INTERNAL_SERVER_ERROR)


class CommentViewSet(EnvelopeMixin,
                     mixins.ListModelMixin,
                     mixins.RetrieveModelMixin,
                     mixins.DestroyModelMixin,
                     viewsets.GenericViewSet):
    """
    API endpoint for comments.

    Non moderators only see approved, non spam comments and their own.
    """
    serializer_class = CommentSerializer
    permission_classes = [CommentPermission]
    filter_backends = [DjangoFilterBackend]
    filterset_class = CommentFilterSet
    pagination_class = CommentPagination

    def get_queryset(self):
        return Comment.objects.visible_to_user(self.request.user).with_related()

    def _commented_response(self, result):
        data = {
            'comment': self.get_serializer(result.comment).data,
            'moderation': result.moderation,
            'status': 'commented',
        }
        return success(data, message=MODERATION_MESSAGE if result.moderation else None)

    def retrieve(self, request, *args, **kwargs):
        return success(self.get_serializer(self.get_object()).data)

    def create(self, request, *args, **kwargs):
        """
        Submit a new comment through the submission pipeline.
        """
        result = submit_comment(request.data, SubmissionContext.from_request(request))
        return self._commented_response(result)

    def destroy(self, request, *args, **kwargs):
        comment = self.get_object()
        delete_comment(comment, moderator=request.user)
        return success(None, message=_('Comment deleted.'))

    @action(detail=True, methods=['post'])
    def edit(self, request, pk=None):
        """
        Replace the body of a comment. Owner (when allowed) or moderator only.
        """
        comment = self.get_object()
        serializer = CommentEditSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = edit_comment(
            comment,
            serializer.validated_data['body'],
            request.user,
            SubmissionContext.from_request(request),
        )
        return self._commented_response(result)

    @action(detail=True, methods=['post'])
    def flag(self, request, pk=None):
        user = request.user if request.user.is_authenticated else None
        comment = set_flagged(pk, True, user=user, queryset=self.get_queryset())
        return success({'comment': {'id': comment.pk}, 'flagged': True, 'status': 'flagged'})

    @action(detail=True, methods=['post'])
    def unflag(self, request, pk=None):
        comment = set_flagged(pk, False, user=request.user, queryset=self.get_queryset())
        return success({'comment': {'id': comment.pk}, 'flagged': False, 'status': 'unflagged'})

    # ------------------------------------------------------------------------
    # Moderation
    # ------------------------------------------------------------------------

    def _moderate(self, transition):
        comment = transition(self.get_object(), self.request.user)
        return success({'comment': self.get_serializer(comment).data})

    @action(detail=True, methods=['post'])
    def approve(self, request, pk=None):
        return self._moderate(approve_comment)

    @action(detail=True, methods=['post'])
    def unapprove(self, request, pk=None):
        return self._moderate(unapprove_comment)

    @action(detail=True, methods=['post'])
    def spam(self, request, pk=None):
        return self._moderate(mark_spam)

    @action(detail=True, methods=['post'], url_path='not-spam')
    def not_spam(self, request, pk=None):
        return self._moderate(mark_not_spam)


class CommentSubscriptionViewSet(EnvelopeMixin,
                                 mixins.ListModelMixin,
                                 viewsets.GenericViewSet):
    """
    API endpoint for comment subscriptions of the current user.
    Moderators can list every subscription.
    """
    serializer_class = CommentSubscriptionSerializer
    permission_classes = [IsAuthenticated]
    filter_backends = [DjangoFilterBackend]
    filterset_class = CommentSubscriptionFilterSet
    pagination_class = CommentPagination

    def get_queryset(self):
        queryset = CommentSubscription.objects.select_related('owner', 'content_type').prefetch_related('resource')
        if not is_moderator(self.request.user):
            queryset = queryset.for_owner(self.request.user)
        return queryset

    def _resolve_resource(self, data):
        serializer = ResourceReferenceSerializer(data=data)
        serializer.is_valid(raise_exception=True)
        resource = get_resource(
            serializer.validated_data['resource_type'],
            serializer.validated_data['resource_id'],
        )
        return resource, serializer.validated_data

    def _apply(self, request, action_name):
        resource, data = self._resolve_resource(request.data)
        subscription, subscribed = apply_subscription_action(
            request.user,
            resource,
            action_name or data.get('action'),
            cache=get_request_cache(request),
        )
        return success({
            'comment_subscription': self.get_serializer(subscription).data if subscribed else None,
            'status': 'subscribed' if subscribed else 'unsubscribed',
        })

    @action(detail=False, methods=['post'])
    def subscribe(self, request):
        return self._apply(request, 'add')

    @action(detail=False, methods=['post'])
    def unsubscribe(self, request):
        return self._apply(request, 'delete')

    @action(detail=False, methods=['post'])
    def toggle(self, request):
        """Add, delete or toggle (default) according to the 'action' field."""
        return self._apply(request, None)

    @action(detail=False, methods=['get'], url_path='status')
    def subscription_status(self, request):
        resource, _data = self._resolve_resource(request.query_params)
        subscribed = is_subscribed(request.user, resource, cache=get_request_cache(request))
        return success({
            'subscribed': subscribed,
            'status': 'subscribed' if subscribed else 'unsubscribed',
        })
