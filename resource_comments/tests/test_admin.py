"""
Tests for the moderation admin in resource_comments/admin.py
"""
from django.contrib.admin.sites import AdminSite
from django.contrib.messages.storage.fallback import FallbackStorage
from django.test import RequestFactory
from django.urls import reverse

from ..admin import CommentAdmin, ResourceTypeListFilter, resource_link
from ..models import Comment
from .base import BaseCommentTestCase
from .models import Item


class CommentAdminTests(BaseCommentTestCase):

    def setUp(self):
        super().setUp()
        self.admin = CommentAdmin(Comment, AdminSite())
        self.request = RequestFactory().post('/admin/')
        self.request.user = self.staff_user
        self.request.session = {}
        self.request._messages = FallbackStorage(self.request)

    def test_approve_action(self):
        comment = self.create_comment(approved=False)
        self.admin.approve_comments(self.request, Comment.objects.filter(pk=comment.pk))
        comment = self.get_fresh_comment(comment)
        self.assertTrue(comment.approved)
        self.assertEqual(comment.history[-1]['user_id'], self.staff_user.pk)

    def test_spam_actions(self):
        comment = self.create_comment()
        self.admin.mark_spam(self.request, Comment.objects.all())
        self.assertTrue(self.get_fresh_comment(comment).spam)
        self.admin.mark_not_spam(self.request, Comment.objects.all())
        self.assertFalse(self.get_fresh_comment(comment).spam)

    def test_flag_actions(self):
        comment = self.create_comment()
        self.admin.flag_comments(self.request, Comment.objects.all())
        self.assertTrue(self.get_fresh_comment(comment).flagged)
        self.admin.unflag_comments(self.request, Comment.objects.all())
        self.assertFalse(self.get_fresh_comment(comment).flagged)

    def test_delete_queryset_reparents(self):
        root = self.create_comment()
        middle = self.create_comment(parent=root)
        leaf = self.create_comment(parent=middle)
        self.admin.delete_queryset(self.request, Comment.objects.filter(pk=middle.pk))
        self.assertEqual(self.get_fresh_comment(leaf).parent_id, root.pk)

    def test_delete_queryset_chain(self):
        first = self.create_comment()
        second = self.create_comment(parent=first)
        third = self.create_comment(parent=second)
        queryset = Comment.objects.filter(pk__in=[first.pk, second.pk]).order_by('created_at', 'pk')

        self.admin.delete_queryset(self.request, queryset)

        third = self.get_fresh_comment(third)
        self.assertIsNone(third.parent_id)
        self.assertEqual(list(Comment.objects.all()), [third])

    def test_body_snippet(self):
        comment = self.create_comment(body='x' * 60)
        self.assertEqual(self.admin.body_snippet(comment), 'x' * 50 + '...')

    def test_resource_link(self):
        comment = self.create_comment()
        link = resource_link(comment)
        self.assertIn(reverse('admin:tests_item_change', args=[self.item.pk]), link)
        self.assertIn('Letter from Paris', link)

    def test_resource_link_for_detached_comment(self):
        item = Item.objects.create(title='Gone')
        comment = self.create_comment(resource=item)
        item.delete()
        self.assertEqual(str(resource_link(self.get_fresh_comment(comment))), '(deleted)')

    def test_resource_type_filter(self):
        self.create_comment()
        media_comment = self.create_comment(resource=self.media)
        list_filter = ResourceTypeListFilter(self.request, {}, Comment, self.admin)
        list_filter.used_parameters['resource_type'] = 'tests.media'
        self.assertIn(('tests.media', 'tests | media'), list_filter.lookups(self.request, self.admin))
        self.assertEqual(list(list_filter.queryset(self.request, Comment.objects.all())), [media_comment])

    def test_changelist_renders(self):
        self.staff_user.is_superuser = True
        self.staff_user.save()
        self.client.force_login(self.staff_user)
        self.create_comment()
        response = self.client.get(reverse('admin:resource_comments_comment_changelist'))
        self.assertEqual(response.status_code, 200)
