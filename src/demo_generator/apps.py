"""App config for the demo data generator."""
from django.apps import AppConfig


class DemoGeneratorConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "demo_generator"
    verbose_name = "Generateur de donnees de demo"
