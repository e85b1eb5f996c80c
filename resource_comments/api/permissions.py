from rest_framework import permissions

from ..utils import is_moderator


class CommentPermission(permissions.BasePermission):
    """
    Permission for the comments API.
    - Anyone can list, retrieve, create (the pipeline decides) and flag
    - Editing requires authentication (ownership is checked by the pipeline)
    - Moderation actions, unflag and delete require a moderator
    """
    moderator_actions = ('approve', 'unapprove', 'spam', 'not_spam', 'unflag', 'destroy')

    def has_permission(self, request, view):
        if view.action in self.moderator_actions:
            return is_moderator(request.user)
        if view.action == 'edit':
            return request.user.is_authenticated
        return True
