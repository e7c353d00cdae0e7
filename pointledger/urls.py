from django.urls import path

from .views import AdjustPointsView, CustomerTransactionsView, LoyaltySettingsView

app_name = "pointledger"

urlpatterns = [
    path("loyalty/settings", LoyaltySettingsView.as_view(), name="loyalty-settings"),
    path(
        "loyalty/transactions/<int:customer_id>",
        CustomerTransactionsView.as_view(),
        name="loyalty-transactions",
    ),
    path("loyalty/adjust/<int:customer_id>", AdjustPointsView.as_view(), name="loyalty-adjust"),
]
