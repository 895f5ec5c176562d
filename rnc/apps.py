from django.apps import AppConfig


class RncConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'rnc'
    verbose_name = 'Registro Nacional del Contribuyente'
