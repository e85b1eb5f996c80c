from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('contenttypes', '0002_remove_content_type_name'),
        ('sites', '0002_alter_domain_unique'),
    ]

    operations = [
        migrations.CreateModel(
            name='Comment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now, editable=False, verbose_name='Created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Modified at')),
                ('object_id', models.CharField(blank=True, db_index=True, max_length=255, verbose_name='Resource ID')),
                ('path', models.CharField(blank=True, max_length=1024, verbose_name='Path')),
                ('email', models.CharField(blank=True, max_length=254, verbose_name='Email')),
                ('name', models.CharField(blank=True, max_length=190, verbose_name='Name')),
                ('website', models.CharField(blank=True, max_length=760, verbose_name='Website')),
                ('ip', models.GenericIPAddressField(default='::', verbose_name='IP address')),
                ('user_agent', models.TextField(blank=True, verbose_name='User agent')),
                ('body', models.TextField(verbose_name='Body')),
                ('approved', models.BooleanField(db_index=True, default=False, verbose_name='Approved')),
                ('flagged', models.BooleanField(db_index=True, default=False, verbose_name='Flagged')),
                ('spam', models.BooleanField(db_index=True, default=False, verbose_name='Spam')),
                ('edited_at', models.DateTimeField(blank=True, null=True, verbose_name='Edited at')),
                ('history', models.JSONField(blank=True, default=list, verbose_name='History')),
                ('content_type', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='contenttypes.contenttype', verbose_name='Resource type')),
                ('owner', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='resource_comments', to=settings.AUTH_USER_MODEL, verbose_name='Owner')),
                ('parent', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='children', to='resource_comments.comment', verbose_name='Parent')),
                ('site', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='sites.site', verbose_name='Site')),
            ],
            options={
                'verbose_name': 'Comment',
                'verbose_name_plural': 'Comments',
                'ordering': ['-created_at'],
                'permissions': [('can_moderate_comments', 'Can moderate comments')],
            },
        ),
        migrations.AddIndex(
            model_name='comment',
            index=models.Index(fields=['content_type', 'object_id'], name='rc_comment_resource_idx'),
        ),
        migrations.AddIndex(
            model_name='comment',
            index=models.Index(fields=['ip', 'created_at'], name='rc_comment_ip_created_idx'),
        ),
        migrations.AddIndex(
            model_name='comment',
            index=models.Index(fields=['approved', 'spam'], name='rc_comment_moderation_idx'),
        ),
        migrations.CreateModel(
            name='CommentSubscription',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('object_id', models.CharField(db_index=True, max_length=255, verbose_name='Resource ID')),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now, editable=False, verbose_name='Created at')),
                ('content_type', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='+', to='contenttypes.contenttype', verbose_name='Resource type')),
                ('owner', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='comment_subscriptions', to=settings.AUTH_USER_MODEL, verbose_name='Owner')),
            ],
            options={
                'verbose_name': 'Comment subscription',
                'verbose_name_plural': 'Comment subscriptions',
                'ordering': ['-created_at'],
            },
        ),
        migrations.AddConstraint(
            model_name='commentsubscription',
            constraint=models.UniqueConstraint(
                fields=('owner', 'content_type', 'object_id'),
                name='unique_comment_subscription',
                violation_error_message='This user has already subscribed to this resource.',
            ),
        ),
    ]
