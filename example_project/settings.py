"""Minimal Django settings used by the test-suite and for local experiments."""

SECRET_KEY = "django-rebac-batch-example"
DEBUG = True
USE_TZ = True

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "django_rebac_batch",
]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

REBAC_BATCH = {
    "adapter": {
        "backend": "spicedb",
        "endpoint": "localhost:50051",
        "token": "devkey",
        "insecure": True,
    },
    "options": {
        "max_parallel_requests": 1,
        "max_tuples_per_chunk": 100,
        "max_retries": 0,
        "retry_delay_seconds": 1.0,
        "stop_on_first_error": False,
    },
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "handlers": {"console": {"class": "logging.StreamHandler"}},
    "loggers": {"django_rebac_batch": {"handlers": ["console"], "level": "INFO"}},
}
