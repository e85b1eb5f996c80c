"""
Celery tasks for resource-comments.

Jobs are scheduled through the ``JOB_DISPATCHER`` setting, which receives a
job name and a dict of arguments. Two dispatchers are provided:

- ``dispatch_with_celery`` (default) queues the task on the Celery broker.
- ``dispatch_synchronously`` runs it in-process, for development and tests.

Start a worker with: celery -A your_project worker -l info
"""
import logging

from celery import shared_task

from .conf import comments_settings
from .notifications import JOB_NAME, NotificationDispatcher

logger = logging.getLogger(comments_settings.LOGGER_NAME)


@shared_task(name='resource_comments.send_notifications')
def send_notifications_task(notification_type=None, comment_id=None, resource_type=None, resource_id=None):
    """
    Send the notifications of one type for a comment.

    Retries are left to the Celery configuration: a missing comment or
    resource ends the job.

    Returns:
        Number of e-mails sent.
    """
    sent = NotificationDispatcher().perform(
        notification_type=notification_type,
        comment_id=comment_id,
        resource_type=resource_type,
        resource_id=resource_id,
    )
    logger.info(f"[Celery] {notification_type} notification job for comment {comment_id} sent {sent} e-mails")
    return sent


JOBS = {
    JOB_NAME: send_notifications_task,
}


def dispatch_with_celery(job_name, args):
    return JOBS[job_name].apply_async(kwargs=args)


def dispatch_synchronously(job_name, args):
    return JOBS[job_name](**args)
