from django.contrib import admin
from django.contrib.contenttypes.models import ContentType
from django.urls import NoReverseMatch, reverse
from django.utils.html import format_html
from django.utils.translation import gettext_lazy as _

from .models import Comment, CommentSubscription
from .signals import batch_update, delete_comment


class ResourceTypeListFilter(admin.SimpleListFilter):
    """
    Filter comments by resource type.
    """
    title = _('resource type')
    parameter_name = 'resource_type'

    def lookups(self, request, model_admin):
        content_types = ContentType.objects.filter(
            id__in=model_admin.model.objects.exclude(content_type=None).values_list('content_type', flat=True).distinct()
        ).order_by('app_label', 'model')

        return [(f"{ct.app_label}.{ct.model}", f"{ct.app_label} | {ct.model}")
                for ct in content_types]

    def queryset(self, request, queryset):
        if not self.value():
            return queryset

        app_label, model = self.value().split('.')
        return queryset.filter(content_type__app_label=app_label,
                               content_type__model=model)


def resource_link(obj):
    """
    Link to the admin change page of the resource.
    """
    if not obj.content_type_id:
        return _('(deleted)')
    resource = obj.resource
    if resource is None:
        return _('(deleted)')
    ct = obj.content_type
    try:
        url = reverse(f"admin:{ct.app_label}_{ct.model}_change", args=[obj.object_id])
    except NoReverseMatch:
        return str(resource)
    return format_html('<a href="{}">{}</a>', url, str(resource))


@admin.register(Comment)
class CommentAdmin(admin.ModelAdmin):
    list_display = (
        'id', 'body_snippet', 'author_name', 'resource_link',
        'created_at', 'approved', 'flagged', 'spam', 'parent', 'edited_at',
    )
    list_filter = (
        'approved', 'flagged', 'spam', 'created_at', 'site',
        ResourceTypeListFilter,
    )
    search_fields = ('body', 'name', 'email', 'ip', 'owner__username', 'path')
    date_hierarchy = 'created_at'
    raw_id_fields = ('owner', 'parent')
    readonly_fields = (
        'content_type', 'object_id', 'resource_link',
        'ip', 'user_agent', 'created_at', 'updated_at', 'edited_at', 'history',
    )
    fieldsets = (
        (_('Comment'), {
            'fields': ('body', 'parent', 'path', 'site')
        }),
        (_('Resource'), {
            'fields': ('content_type', 'object_id', 'resource_link')
        }),
        (_('Author'), {
            'fields': ('owner', 'name', 'email', 'website', 'ip', 'user_agent')
        }),
        (_('Moderation'), {
            'fields': ('approved', 'flagged', 'spam', 'created_at', 'updated_at', 'edited_at', 'history')
        }),
    )
    actions = [
        'approve_comments', 'unapprove_comments',
        'flag_comments', 'unflag_comments',
        'mark_spam', 'mark_not_spam',
    ]

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('owner', 'content_type', 'parent', 'site')

    @admin.display(description=_('Body'))
    def body_snippet(self, obj):
        if len(obj.body) > 50:
            return f"{obj.body[:50]}..."
        return obj.body

    @admin.display(description=_('Author'))
    def author_name(self, obj):
        return obj.author_name

    @admin.display(description=_('Resource'))
    def resource_link(self, obj):
        return resource_link(obj)

    def delete_model(self, request, obj):
        delete_comment(obj, moderator=request.user)

    def delete_queryset(self, request, queryset):
        for pk in list(queryset.values_list('pk', flat=True)):
            comment = Comment.objects.filter(pk=pk).first()
            if comment is not None:
                delete_comment(comment, moderator=request.user)

    def _batch(self, request, queryset, message, **flags):
        count = batch_update(queryset, user=request.user, **flags)
        self.message_user(request, message % {'count': count})

    @admin.action(description=_("Approve selected comments"))
    def approve_comments(self, request, queryset):
        self._batch(request, queryset, _("Successfully approved %(count)d comments."), approved=True)

    @admin.action(description=_("Unapprove selected comments"))
    def unapprove_comments(self, request, queryset):
        self._batch(request, queryset, _("Successfully unapproved %(count)d comments."), approved=False)

    @admin.action(description=_("Flag selected comments"))
    def flag_comments(self, request, queryset):
        self._batch(request, queryset, _("Successfully flagged %(count)d comments."), flagged=True)

    @admin.action(description=_("Unflag selected comments"))
    def unflag_comments(self, request, queryset):
        self._batch(request, queryset, _("Successfully unflagged %(count)d comments."), flagged=False)

    @admin.action(description=_("Mark selected comments as spam"))
    def mark_spam(self, request, queryset):
        self._batch(request, queryset, _("Successfully marked %(count)d comments as spam."), spam=True)

    @admin.action(description=_("Mark selected comments as not spam"))
    def mark_not_spam(self, request, queryset):
        self._batch(request, queryset, _("Successfully marked %(count)d comments as not spam."), spam=False)


@admin.register(CommentSubscription)
class CommentSubscriptionAdmin(admin.ModelAdmin):
    list_display = ('id', 'owner', 'content_type', 'object_id', 'created_at')
    list_filter = ('content_type', 'created_at')
    search_fields = ('owner__username', 'owner__email', 'object_id')
    raw_id_fields = ('owner',)
    readonly_fields = ('created_at',)
