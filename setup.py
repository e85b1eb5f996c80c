#!/usr/bin/env python
"""
Setup configuration for django-resource-comments package.
"""
from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="django-resource-comments",
    version="1.0.0",
    description="A reusable Django app to comment on any resource, with moderation, subscriptions, spam checks and a REST API",
    long_description=long_description,
    long_description_content_type="text/markdown",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Web Environment",
        "Framework :: Django",
        "Framework :: Django :: 4.2",
        "Framework :: Django :: 5.0",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Internet :: WWW/HTTP",
        "Topic :: Internet :: WWW/HTTP :: Dynamic Content",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    keywords=["django", "comments", "rest-framework", "api", "moderation", "subscriptions", "spam-detection"],
    packages=find_packages(exclude=["docs", "docs.*"]),
    include_package_data=True,
    python_requires=">=3.10",
    install_requires=[
        "Django>=4.2",
        "djangorestframework>=3.14.0",
        "django-filter>=23.0",
        "celery>=5.3.0",
    ],
    extras_require={
        'redis': [
            'redis>=4.5.0',
        ],
        'test': [
            'pytest>=7.4.0',
            'pytest-django>=4.7.0',
            'pytest-cov>=4.1.0',
            'factory-boy>=3.3.0',
            'Faker>=20.0.0',
            'freezegun>=1.4.0',
        ],
        'dev': [
            # Testing
            'pytest>=7.4.0',
            'pytest-django>=4.7.0',
            'pytest-cov>=4.1.0',
            'pytest-xdist>=3.5.0',
            'factory-boy>=3.3.0',
            'Faker>=20.0.0',
            'freezegun>=1.4.0',
            # Code Quality
            'black>=23.0.0',
            'isort>=5.13.0',
            'ruff>=0.1.0',
            'mypy>=1.7.0',
            'django-stubs>=4.2.0',
            'djangorestframework-stubs>=3.14.0',
        ],
    },
    zip_safe=False,
)
