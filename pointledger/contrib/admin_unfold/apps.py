from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class PointledgerAdminUnfoldConfig(AppConfig):
    name = "pointledger.contrib.admin_unfold"
    label = "pointledger_admin_unfold"
    verbose_name = _("Admin (Unfold)")
