"""
Tests for resource_comments models.

Tests cover:
- Comment validation rules applied on creation
- Reply rules and re-parenting on deletion
- Audit history
- Resource helpers and properties
- Subscription uniqueness
- Detaching comments when a resource is deleted
"""
from datetime import timedelta

from django.contrib.contenttypes.models import ContentType
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone
from freezegun import freeze_time

from ..models import Comment, CommentSubscription
from .base import BaseCommentTestCase
from .factories import CommentFactory, MediaFactory, SubscriptionFactory
from .models import Item


class CommentValidationTests(BaseCommentTestCase):

    def assertInvalidField(self, field, **kwargs):
        with self.assertRaises(ValidationError) as ctx:
            self.create_comment(**kwargs)
        self.assertIn(field, ctx.exception.message_dict)

    def test_create_valid_comment(self):
        comment = self.create_comment()
        self.assertIsNotNone(comment.pk)
        self.assertTrue(comment.approved)
        self.assertFalse(comment.flagged)
        self.assertFalse(comment.spam)
        self.assertEqual(comment.resource, self.item)

    def test_empty_body(self):
        self.assertInvalidField('body', body='   ')

    def test_empty_user_agent(self):
        self.assertInvalidField('user_agent', user_agent='')

    def test_invalid_ip_marker(self):
        self.assertInvalidField('ip', ip='::')

    def test_anonymous_comment_requires_email(self):
        self.assertInvalidField('email', email='not-an-email')

    def test_owner_comment_does_not_require_email(self):
        comment = self.create_comment(owner=self.regular_user, email='')
        self.assertEqual(comment.email, '')

    def test_website_is_normalized(self):
        comment = self.create_comment(website='https://blog.example.org/post?ref=feed#c1')
        self.assertEqual(comment.website, 'https://blog.example.org/post')

    def test_website_without_scheme_is_dropped(self):
        comment = self.create_comment(website='blog.example.org')
        self.assertEqual(comment.website, '')

    def test_reply_to_unapproved_parent(self):
        parent = self.create_comment(approved=False)
        self.assertInvalidField('parent', parent=parent)

    def test_edited_at_before_created_at(self):
        comment = self.create_comment()
        comment.edited_at = comment.created_at - timedelta(minutes=1)
        with self.assertRaises(ValidationError) as ctx:
            comment.full_clean()
        self.assertIn('edited_at', ctx.exception.message_dict)

    def test_skip_validation(self):
        comment = Comment(
            content_type=self.item_ct, object_id=str(self.item.pk),
            body='Imported', ip='203.0.113.5', user_agent='',
        )
        comment.save(skip_validation=True)
        self.assertIsNotNone(comment.pk)

    def test_validation_only_on_creation(self):
        parent = self.create_comment()
        reply = self.create_comment(parent=parent)
        parent.approved = False
        parent.save()
        # Existing replies stay valid when the parent gets unapproved
        reply.body = 'Updated'
        reply.save()
        self.assertEqual(self.get_fresh_comment(reply).body, 'Updated')


class CommentThreadTests(BaseCommentTestCase):

    def test_children_ids(self):
        parent = self.create_comment()
        first = self.create_comment(parent=parent)
        second = self.create_comment(parent=parent)
        self.assertCountEqual(parent.children_ids, [first.pk, second.pk])
        self.assertTrue(first.is_reply)
        self.assertFalse(parent.is_reply)

    def test_delete_reparents_children_to_grandparent(self):
        root = self.create_comment()
        middle = self.create_comment(parent=root)
        leaf = self.create_comment(parent=middle)

        middle.delete()

        self.assertEqual(self.get_fresh_comment(leaf).parent_id, root.pk)
        self.assertEqual(root.children_ids, [leaf.pk])

    def test_delete_root_makes_children_roots(self):
        root = self.create_comment()
        reply = self.create_comment(parent=root)

        root.delete()

        self.assertIsNone(self.get_fresh_comment(reply).parent_id)

    def test_delete_with_stale_parent(self):
        root = self.create_comment()
        middle = self.create_comment(parent=root)
        leaf = self.create_comment(parent=middle)
        stale_middle = Comment.objects.get(pk=middle.pk)

        root.delete()
        stale_middle.delete()

        leaf = self.get_fresh_comment(leaf)
        self.assertIsNone(leaf.parent_id)
        self.assertIsNone(leaf.parent)


class CommentHistoryTests(BaseCommentTestCase):

    @freeze_time('2024-03-01 10:00:00')
    def test_add_history_entry(self):
        comment = self.create_comment()
        entry = comment.add_history('approved', user=self.moderator, data={'note': 'ok'})
        self.assertEqual(entry, {
            'action': 'approved',
            'timestamp': '2024-03-01T10:00:00+00:00',
            'user_id': self.moderator.pk,
            'data': {'note': 'ok'},
        })
        self.assertEqual(comment.history[-1], entry)

    def test_history_is_appended(self):
        comment = self.create_comment()
        comment.add_history('flagged')
        comment.add_history('unflagged')
        comment.save()
        self.assertHistoryActions(self.get_fresh_comment(comment), ['flagged', 'unflagged'])


class CommentPropertiesTests(BaseCommentTestCase):

    def test_resource_type_and_id(self):
        comment = self.create_comment()
        self.assertEqual(comment.resource_type, 'tests.item')
        self.assertEqual(comment.resource_id, str(self.item.pk))

    def test_media_comment(self):
        comment = self.create_comment(resource=self.media)
        self.assertEqual(comment.resource_type, 'tests.media')
        self.assertEqual(comment.resource, self.media)

    def test_author_name(self):
        self.assertEqual(self.create_comment(name='Jean').author_name, 'Jean')
        self.assertEqual(str(self.create_comment(name='').author_name), 'Anonymous')

    def test_str(self):
        comment = self.create_comment(name='Jean')
        self.assertEqual(str(comment), f'Comment #{comment.pk} by Jean')

    def test_factory_comment(self):
        comment = CommentFactory(target=MediaFactory())
        self.assertEqual(comment.resource_type, 'tests.media')
        self.assertTrue(comment.approved)


class CommentQuerySetTests(BaseCommentTestCase):

    def setUp(self):
        super().setUp()
        self.published = self.create_comment()
        self.pending = self.create_comment(approved=False)
        self.spam = self.create_comment(approved=False, spam=True)
        self.own_pending = self.create_user_comment(approved=False)
        self.elsewhere = self.create_comment(resource=self.loose_item)

    def test_for_resource(self):
        self.assertNotIn(self.elsewhere, Comment.objects.for_resource(self.item))
        self.assertEqual(Comment.objects.for_resource(self.loose_item).get(), self.elsewhere)

    def test_moderation_querysets(self):
        self.assertIn(self.pending, Comment.objects.pending())
        self.assertIn(self.spam, Comment.objects.spam())
        self.assertNotIn(self.spam, Comment.objects.published())
        self.assertIn(self.published, Comment.objects.published())

    def test_visible_to_anonymous(self):
        visible = Comment.objects.visible_to_user(None)
        self.assertCountEqual(visible, [self.published, self.elsewhere])

    def test_visible_to_owner(self):
        visible = Comment.objects.visible_to_user(self.regular_user)
        self.assertIn(self.own_pending, visible)
        self.assertNotIn(self.pending, visible)

    def test_visible_to_moderator(self):
        self.assertEqual(Comment.objects.visible_to_user(self.moderator).count(), 5)

    def test_from_ip_since(self):
        since = timezone.now() - timedelta(minutes=5)
        self.assertEqual(Comment.objects.from_ip_since('203.0.113.5', since).count(), 5)
        self.assertEqual(Comment.objects.from_ip_since('198.51.100.1', since).count(), 0)

    def test_create_for_resource(self):
        comment = Comment.objects.create_for_resource(
            self.media, body='Scan is upside down', email='a@example.org',
            ip='203.0.113.5', user_agent='Mozilla/5.0',
        )
        self.assertEqual(comment.object_id, str(self.media.pk))


class CommentSubscriptionModelTests(BaseCommentTestCase):

    def test_unique_per_owner_and_resource(self):
        self.create_subscription()
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                self.create_subscription()

    def test_clean_reports_duplicate(self):
        self.create_subscription()
        duplicate = CommentSubscription(
            owner=self.regular_user, content_type=self.item_ct, object_id=str(self.item.pk)
        )
        with self.assertRaises(ValidationError) as ctx:
            duplicate.full_clean()
        self.assertIn('owner', ctx.exception.message_dict)

    def test_other_owner_or_resource_allowed(self):
        self.create_subscription()
        self.create_subscription(owner=self.another_user)
        self.create_subscription(resource=self.media)
        self.assertEqual(CommentSubscription.objects.count(), 3)

    def test_factory(self):
        subscription = SubscriptionFactory()
        self.assertIsInstance(subscription.resource, Item)


class ResourceDeletionTests(BaseCommentTestCase):

    def test_comments_are_detached(self):
        item = Item.objects.create(title='Doomed')
        comment = self.create_comment(resource=item)
        other = self.create_comment()

        item.delete()

        comment = self.get_fresh_comment(comment)
        self.assertIsNone(comment.content_type_id)
        self.assertEqual(comment.object_id, '')
        self.assertIsNone(comment.resource_type)
        self.assertEqual(self.get_fresh_comment(other).object_id, str(self.item.pk))

    def test_subscriptions_are_deleted(self):
        item = Item.objects.create(title='Doomed')
        self.create_subscription(resource=item)
        kept = self.create_subscription()

        item.delete()

        self.assertEqual(list(CommentSubscription.objects.all()), [kept])

    def test_cascaded_media_comments_are_detached(self):
        item = Item.objects.create(title='Doomed')
        media = MediaFactory(item=item)
        comment = self.create_comment(resource=media)

        item.delete()

        self.assertIsNone(self.get_fresh_comment(comment).content_type_id)

    def test_deleting_owner_keeps_comment(self):
        comment = self.create_user_comment(user=self.another_user)
        self.another_user.delete()
        comment = self.get_fresh_comment(comment)
        self.assertIsNone(comment.owner_id)
        self.assertEqual(comment.name, 'Alice Johnson')
