"""
Resource lookup for resource-comments.

Any model listed in ``COMMENTABLE_MODELS`` is a resource. A resource is
addressed by ``(resource_type, resource_id)`` where ``resource_type`` is the
content type label (``app_label.modelname``).

Resource models may implement the following capabilities:

- ``get_comment_title()``: display title (defaults to ``str(obj)``)
- ``get_absolute_url()``: public URL
- ``comment_collection_lookup``: ORM lookup path from the resource to the
  primary key of the collection(s) it belongs to, e.g. ``'item_sets'``.
"""
import importlib
import logging
from typing import List, Optional, Type

from django.apps import apps
from django.contrib.contenttypes.models import ContentType
from django.contrib.sites.models import Site
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import CharField, Q
from django.db.models.functions import Cast
from django.urls import NoReverseMatch, reverse

from .conf import comments_settings
from .exceptions import ResourceNotFound

logger = logging.getLogger(comments_settings.LOGGER_NAME)


def _load_model(model_path: str) -> Optional[Type[models.Model]]:
    try:
        return apps.get_model(model_path)
    except (ValueError, LookupError):
        pass

    # module.path.ModelClass format
    if model_path.count('.') >= 2:
        module_path, class_name = model_path.rsplit('.', 1)
        try:
            model = getattr(importlib.import_module(module_path), class_name)
        except (ImportError, AttributeError):
            return None
        if isinstance(model, type) and issubclass(model, models.Model):
            return model
    return None


def get_commentable_models() -> List[Type[models.Model]]:
    """Return the model classes that can be commented on."""
    models_list = []
    for model_path in comments_settings.COMMENTABLE_MODELS:
        model = _load_model(model_path)
        if model is None:
            logger.error(f"Could not load commentable model '{model_path}'")
            continue
        models_list.append(model)
    return models_list


def is_commentable(model) -> bool:
    concrete = model._meta.concrete_model
    return any(m._meta.concrete_model is concrete for m in get_commentable_models())


def resource_label(obj_or_model) -> str:
    """Content type label of a resource instance or class: ``app_label.modelname``."""
    return obj_or_model._meta.label_lower


def get_resource_model(label: str) -> Optional[Type[models.Model]]:
    """
    Map a resource type label to a commentable model.

    Accepts ``app_label.modelname`` (any case) or the bare model name.
    """
    if not label:
        return None
    label = str(label).lower()
    for model in get_commentable_models():
        if label in (model._meta.label_lower, model._meta.model_name):
            return model
    return None


def get_resource_content_type(label: str) -> Optional[ContentType]:
    model = get_resource_model(label)
    if model is None:
        return None
    return ContentType.objects.get_for_model(model)


def get_resource(label: str, resource_id) -> models.Model:
    """
    Resolve a resource.

    Raises:
        ResourceNotFound: when the type is not commentable or the row is
            missing.
    """
    model = get_resource_model(label)
    if model is None or resource_id in (None, ''):
        raise ResourceNotFound()
    try:
        return model._default_manager.get(pk=resource_id)
    except (model.DoesNotExist, ValueError, TypeError, ValidationError):
        # Malformed primary keys are reported the same way as missing rows
        logger.debug(f"Could not resolve resource {label}#{resource_id}")
        raise ResourceNotFound()


def get_resource_title(resource) -> str:
    if resource is None:
        return ''
    get_title = getattr(resource, 'get_comment_title', None)
    if callable(get_title):
        return str(get_title())
    return str(resource)


def get_site_domain(site=None) -> str:
    domain = comments_settings.SITE_DOMAIN
    if not domain:
        site = site or Site.objects.get_current()
        domain = site.domain
    return domain


def build_absolute_url(path: str, site=None) -> str:
    if not path or path.startswith(('http://', 'https://')):
        return path or ''
    protocol = 'https' if comments_settings.USE_HTTPS else 'http'
    return f"{protocol}://{get_site_domain(site)}{path}"


def get_resource_url(resource, site=None) -> str:
    """Absolute public URL of a resource, or an empty string."""
    get_url = getattr(resource, 'get_absolute_url', None)
    if not callable(get_url):
        return ''
    try:
        return build_absolute_url(get_url(), site)
    except NoReverseMatch:
        return ''


def get_resource_admin_url(resource, site=None) -> str:
    """Absolute admin change URL of a resource, or an empty string."""
    opts = resource._meta
    try:
        path = reverse(f'admin:{opts.app_label}_{opts.model_name}_change', args=[resource.pk])
    except NoReverseMatch:
        return ''
    return build_absolute_url(path, site)


def get_collection_ids(resource) -> List:
    """Primary keys of the collections a resource belongs to."""
    lookup = getattr(resource, 'comment_collection_lookup', None)
    if not lookup:
        return []
    values = (
        type(resource)._default_manager
        .filter(pk=resource.pk, **{f'{lookup}__isnull': False})
        .values_list(lookup, flat=True)
    )
    return sorted(set(values))


# ============================================================================
# QUERY HELPERS (dispatch on the resource variant)
# ============================================================================

def _resource_ids_subquery(model, **lookups):
    return (
        model._default_manager
        .filter(**lookups)
        .annotate(pk_str=Cast('pk', CharField()))
        .values('pk_str')
    )


def collection_filter(collection_ids) -> Q:
    """
    Q matching comments whose resource belongs to one of ``collection_ids``.

    Resource variants without ``comment_collection_lookup`` never match.
    """
    query = Q(pk__in=[])
    collection_ids = list(collection_ids)
    if not collection_ids:
        return query

    for model in get_commentable_models():
        lookup = getattr(model, 'comment_collection_lookup', None)
        if not lookup:
            continue
        content_type = ContentType.objects.get_for_model(model)
        query |= Q(
            content_type=content_type,
            object_id__in=_resource_ids_subquery(model, **{f'{lookup}__in': collection_ids}),
        )
    return query


def no_collection_filter() -> Q:
    """Q matching comments whose resource belongs to no collection."""
    query = Q(pk__in=[])
    for model in get_commentable_models():
        lookup = getattr(model, 'comment_collection_lookup', None)
        if not lookup:
            continue
        content_type = ContentType.objects.get_for_model(model)
        query |= Q(
            content_type=content_type,
            object_id__in=_resource_ids_subquery(model, **{f'{lookup}__isnull': True}),
        )
    return query
