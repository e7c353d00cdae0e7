from django.apps import AppConfig


class PointledgerConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "pointledger"
    verbose_name = "Pointledger - Loyalty Points"
