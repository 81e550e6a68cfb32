from django.apps import AppConfig


class GeolocationConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'geolocation'
    verbose_name = 'Géolocalisation'
