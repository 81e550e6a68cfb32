from django.apps import AppConfig


class OnlineClassesConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'online_classes'
    verbose_name = 'Cours en ligne'
