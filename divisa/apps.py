from django.apps import AppConfig


class DivisaConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'divisa'
    verbose_name = 'Conversión de divisas'
