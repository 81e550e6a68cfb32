from django.apps import AppConfig


class TenantsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'tenants'
    verbose_name = 'Écoles (multi-tenant)'

    def ready(self):
        # Invalidation du cache du middleware à chaque modification d'école
        import tenants.signals  # noqa: F401
