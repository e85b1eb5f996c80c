"""
Tests for resource_comments/tasks.py

Celery tasks are called directly or through mocks, no broker is needed.
"""
from unittest.mock import Mock, patch

from django.core import mail

from ..notifications import JOB_NAME, MODERATORS, SUBSCRIBERS
from ..signals import approve_comment
from ..tasks import JOBS, dispatch_synchronously, dispatch_with_celery, send_notifications_task
from .base import BaseCommentTestCase, override_comment_settings


class SendNotificationsTaskTests(BaseCommentTestCase):

    def setUp(self):
        super().setUp()
        mail.outbox = []
        self.comment = self.create_comment()
        self.create_subscription()

    def test_task_is_registered_under_job_name(self):
        self.assertIs(JOBS[JOB_NAME], send_notifications_task)
        self.assertEqual(send_notifications_task.name, 'resource_comments.send_notifications')

    def test_task_sends_notifications(self):
        sent = send_notifications_task(
            notification_type=SUBSCRIBERS,
            comment_id=self.comment.pk,
            resource_type='tests.item',
            resource_id=str(self.item.pk),
        )
        self.assertEqual(sent, 1)
        self.assertEqual(mail.outbox[0].to, ['john@example.com'])

    def test_task_with_missing_comment(self):
        with self.assertLogs('resource_comments', level='ERROR'):
            sent = send_notifications_task(
                notification_type=SUBSCRIBERS,
                comment_id=999999,
                resource_type='tests.item',
                resource_id=str(self.item.pk),
            )
        self.assertEqual(sent, 0)

    def test_task_runs_eagerly(self):
        result = send_notifications_task.apply(kwargs={
            'notification_type': SUBSCRIBERS,
            'comment_id': self.comment.pk,
            'resource_type': 'tests.item',
            'resource_id': str(self.item.pk),
        })
        self.assertEqual(result.get(), 1)


class DispatcherTests(BaseCommentTestCase):

    def setUp(self):
        super().setUp()
        mail.outbox = []

    def test_dispatch_with_celery_queues_kwargs(self):
        args = {'notification_type': MODERATORS, 'comment_id': 1, 'resource_type': 'tests.item', 'resource_id': '1'}
        task = Mock()
        with patch.dict(JOBS, {JOB_NAME: task}):
            dispatch_with_celery(JOB_NAME, args)
        task.apply_async.assert_called_once_with(kwargs=args)

    def test_dispatch_synchronously_sends_mail(self):
        comment = self.create_comment(approved=False)
        self.create_subscription()

        with override_comment_settings(
            JOB_DISPATCHER='resource_comments.tasks.dispatch_synchronously',
            NOTIFY_SUBSCRIBERS=True,
        ):
            approve_comment(comment, moderator=self.moderator)

        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].subject, '[Test Archive] New comment')

    def test_dispatch_synchronously_returns_count(self):
        comment = self.create_comment()
        self.assertEqual(dispatch_synchronously(JOB_NAME, {
            'notification_type': SUBSCRIBERS,
            'comment_id': comment.pk,
            'resource_type': 'tests.item',
            'resource_id': str(self.item.pk),
        }), 0)
