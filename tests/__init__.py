"""Test package for django-rebac-batch."""
