from django.apps import AppConfig


class AiBehaviourConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "ai_behaviour"
    verbose_name = "Behaviour analysis"
