from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

app_name = 'resource_comments_api'

router = DefaultRouter()
router.register(r'comments', views.CommentViewSet, basename='comment')
router.register(r'subscriptions', views.CommentSubscriptionViewSet, basename='subscription')

urlpatterns = [
    path('', include(router.urls)),
]
