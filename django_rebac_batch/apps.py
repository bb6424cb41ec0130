from django.apps import AppConfig


class DjangoRebacBatchConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "django_rebac_batch"
    verbose_name = "Django ReBAC batch writes"
