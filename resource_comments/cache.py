"""
Request scoped lookup cache.

A ``RequestCache`` lives for one request or operation. It is passed
explicitly to the lookups that accept one; nothing is shared between
requests.
"""
from django.contrib.contenttypes.models import ContentType

REQUEST_ATTRIBUTE = '_resource_comments_cache'


def get_cache_key(prefix, resource, owner=None):
    """Generate a key for a resource, optionally scoped to an owner."""
    ct = ContentType.objects.get_for_model(resource)
    key = f"{prefix}:{ct.app_label}.{ct.model}:{resource.pk}"
    if owner is not None:
        key = f"{key}:user-{owner.pk}"
    return key


class RequestCache:
    """In-memory key/value store with get/set/clear."""

    _missing = object()

    def __init__(self):
        self._data = {}

    def get(self, key, default=None):
        return self._data.get(key, default)

    def set(self, key, value):
        self._data[key] = value
        return value

    def delete(self, key):
        self._data.pop(key, None)

    def clear(self):
        self._data.clear()

    def get_or_set(self, key, factory):
        value = self._data.get(key, self._missing)
        if value is self._missing:
            value = self.set(key, factory())
        return value

    def __contains__(self, key):
        return key in self._data

    def __len__(self):
        return len(self._data)


def get_request_cache(request):
    """
    Return the cache bound to a request, creating it on first use.
    """
    # DRF requests proxy attributes to the underlying HttpRequest
    http_request = getattr(request, '_request', request)
    cache = getattr(http_request, REQUEST_ATTRIBUTE, None)
    if cache is None:
        cache = RequestCache()
        setattr(http_request, REQUEST_ATTRIBUTE, cache)
    return cache
