from django.urls import path, include

app_name = 'resource_comments'

urlpatterns = [
    # REST API URLs
    path('api/', include('resource_comments.api.urls', namespace='api')),
]
