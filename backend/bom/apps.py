from django.apps import AppConfig


class BomConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'backend.bom'
    verbose_name = 'Bill of Materials'
