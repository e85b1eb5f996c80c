from typing import Any, Dict, List, Optional

from django.contrib.auth import get_user_model
from rest_framework import serializers

from ..models import Comment, CommentSubscription
from ..resources import get_resource_title, get_resource_url
from ..utils import is_moderator

User = get_user_model()

SENSITIVE_FIELDS = ('email', 'ip', 'user_agent', 'history')


def describe_resource(obj) -> Optional[Dict[str, Any]]:
    """Resource reference for comments and subscriptions."""
    if not obj.content_type_id:
        return None
    resource = obj.resource
    return {
        'type': f'{obj.content_type.app_label}.{obj.content_type.model}',
        'id': obj.object_id,
        'title': get_resource_title(resource) if resource is not None else None,
        'url': get_resource_url(resource) if resource is not None else None,
    }


class UserSerializer(serializers.ModelSerializer):
    """
    Minimal public representation of a user.
    """
    display_name = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ('id', 'display_name')
        read_only_fields = fields

    def get_display_name(self, obj) -> str:
        return obj.get_full_name() or obj.get_username()


class CommentSerializer(serializers.ModelSerializer):
    """
    Read serializer for comments.

    email, ip, user_agent and history are only shown to moderators and to the owner
    of the comment.
    """
    owner = serializers.SerializerMethodField()
    resource = serializers.SerializerMethodField()
    author = serializers.CharField(source='author_name', read_only=True)
    children = serializers.SerializerMethodField()
    modified_at = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = Comment
        fields = (
            'id', 'owner', 'resource', 'site', 'path',
            'author', 'name', 'email', 'website', 'ip', 'user_agent',
            'body', 'approved', 'flagged', 'spam',
            'parent', 'children',
            'created_at', 'modified_at', 'edited_at', 'history',
        )
        read_only_fields = fields

    def get_owner(self, obj) -> Optional[Dict[str, Any]]:
        if obj.owner_id is None:
            return None
        # Anonymous identity mode hides who posted
        if not obj.name and not obj.email and not self.can_view_sensitive_data(obj):
            return None
        return UserSerializer(obj.owner).data

    def get_resource(self, obj) -> Optional[Dict[str, Any]]:
        return describe_resource(obj)

    def get_children(self, obj) -> List[int]:
        return obj.children_ids

    def can_view_sensitive_data(self, obj) -> bool:
        request = self.context.get('request')
        user = getattr(request, 'user', None)
        if user is None or not user.is_authenticated:
            return False
        return is_moderator(user) or obj.owner_id == user.pk

    def to_representation(self, instance):
        data = super().to_representation(instance)
        if not self.can_view_sensitive_data(instance):
            for field in SENSITIVE_FIELDS:
                data.pop(field, None)
        return data


class CommentEditSerializer(serializers.Serializer):
    body = serializers.CharField(allow_blank=True, required=False, default='', trim_whitespace=False)


class ResourceReferenceSerializer(serializers.Serializer):
    """
    Input for the subscription endpoints.
    """
    resource_type = serializers.CharField()
    resource_id = serializers.CharField()
    action = serializers.CharField(required=False, allow_blank=True)


class CommentSubscriptionSerializer(serializers.ModelSerializer):
    owner = UserSerializer(read_only=True)
    resource = serializers.SerializerMethodField()

    class Meta:
        model = CommentSubscription
        fields = ('id', 'owner', 'resource', 'created_at')
        read_only_fields = fields

    def get_resource(self, obj) -> Optional[Dict[str, Any]]:
        return describe_resource(obj)
