import django_filters
from django.utils.translation import gettext_lazy as _

from ..conf import comments_settings
from ..models import Comment, CommentSubscription
from ..resources import collection_filter, get_resource_content_type, no_collection_filter
from ..utils import parse_bool


class ResourceTypeFilter(django_filters.CharFilter):
    """
    Filter by resource type label ('app_label.model' or the bare model name).
    'resources' matches any comment attached to a resource; an unknown type
    matches nothing.
    """
    def filter(self, qs, value):
        if not value:
            return qs
        if value == 'resources':
            return qs.filter(content_type__isnull=False)
        content_type = get_resource_content_type(value)
        if content_type is None:
            return qs.none()
        return qs.filter(content_type=content_type)


class FlagFilter(django_filters.CharFilter):
    """
    Boolean filter where false, 'false', 0 and '0' are false and anything
    else is true.
    """
    def filter(self, qs, value):
        if value in (None, ''):
            return qs
        return qs.filter(**{self.field_name: parse_bool(value)})


class NumberInFilter(django_filters.BaseInFilter, django_filters.NumberFilter):
    pass


class CommentFilterSet(django_filters.FilterSet):
    """
    FilterSet for comments API.
    """
    id = django_filters.NumberFilter(field_name='id')
    resource_type = ResourceTypeFilter(
        help_text=_("Filter by resource type (e.g., 'catalog.item')")
    )
    resource_id = django_filters.CharFilter(
        field_name='object_id',
        help_text=_("Filter by resource ID")
    )
    has_resource = django_filters.BooleanFilter(
        method='filter_has_resource',
        help_text=_("Filter comments whose resource still exists")
    )
    owner_id = django_filters.NumberFilter(field_name='owner')
    site_id = django_filters.NumberFilter(field_name='site')
    parent_id = django_filters.CharFilter(
        method='filter_parent',
        help_text=_("Filter by parent comment ID, 'none' for root comments")
    )

    # Moderation flags
    approved = FlagFilter(field_name='approved')
    flagged = FlagFilter(field_name='flagged')
    spam = FlagFilter(field_name='spam')

    # Free text
    path = django_filters.CharFilter(lookup_expr='icontains')
    website = django_filters.CharFilter(lookup_expr='icontains')
    name = django_filters.CharFilter(lookup_expr='icontains')
    user_agent = django_filters.CharFilter(lookup_expr='icontains')
    email = django_filters.CharFilter(lookup_expr='iexact')
    ip = django_filters.CharFilter(lookup_expr='exact')

    # Date range filtering
    created_after = django_filters.IsoDateTimeFilter(field_name='created_at', lookup_expr='gt')
    created_before = django_filters.IsoDateTimeFilter(field_name='created_at', lookup_expr='lt')
    modified_after = django_filters.IsoDateTimeFilter(field_name='updated_at', lookup_expr='gt')
    modified_before = django_filters.IsoDateTimeFilter(field_name='updated_at', lookup_expr='lt')
    edited_after = django_filters.IsoDateTimeFilter(field_name='edited_at', lookup_expr='gt')
    edited_before = django_filters.IsoDateTimeFilter(field_name='edited_at', lookup_expr='lt')

    # Collections
    collection_id = NumberInFilter(
        method='filter_collection',
        help_text=_("Comma separated collection IDs, 0 for resources without collection")
    )
    group = django_filters.CharFilter(
        method='filter_group',
        help_text=_("Group name from COMMENT_GROUPS, 'none' for ungrouped resources")
    )

    ordering = django_filters.OrderingFilter(
        fields=(
            ('id', 'id'),
            ('created_at', 'created'),
            ('updated_at', 'modified'),
            ('edited_at', 'edited'),
            ('approved', 'approved'),
            ('flagged', 'flagged'),
            ('spam', 'spam'),
        )
    )

    class Meta:
        model = Comment
        fields = []

    def filter_has_resource(self, queryset, name, value):
        if value is None:
            return queryset
        return queryset.filter(content_type__isnull=not value)

    def filter_parent(self, queryset, name, value):
        """
        Filter by parent ID.
        If value is 'none', return comments with no parent.
        """
        if value == 'none':
            return queryset.filter(parent__isnull=True)
        try:
            return queryset.filter(parent_id=int(value))
        except (TypeError, ValueError):
            return queryset.none()

    def filter_collection(self, queryset, name, value):
        if not value:
            return queryset
        ids = [int(v) for v in value]
        query = collection_filter([i for i in ids if i != 0])
        if 0 in ids:
            query |= no_collection_filter()
        return queryset.filter(query)

    def filter_group(self, queryset, name, value):
        if not value:
            return queryset
        groups = comments_settings.COMMENT_GROUPS or {}
        if value == 'none':
            grouped_ids = [cid for ids in groups.values() for cid in ids]
            if not grouped_ids:
                return queryset
            return queryset.exclude(collection_filter(grouped_ids))
        if value not in groups:
            return queryset.none()
        return queryset.filter(collection_filter(groups[value]))


class CommentSubscriptionFilterSet(django_filters.FilterSet):
    id = django_filters.NumberFilter(field_name='id')
    resource_type = ResourceTypeFilter()
    resource_id = django_filters.CharFilter(field_name='object_id')
    owner_id = django_filters.NumberFilter(field_name='owner')
    created_after = django_filters.IsoDateTimeFilter(field_name='created_at', lookup_expr='gt')
    created_before = django_filters.IsoDateTimeFilter(field_name='created_at', lookup_expr='lt')

    ordering = django_filters.OrderingFilter(
        fields=(
            ('id', 'id'),
            ('created_at', 'created'),
        )
    )

    class Meta:
        model = CommentSubscription
        fields = []
