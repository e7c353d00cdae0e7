"""
Loyalty JSON endpoints.

    GET  loyalty/settings                      - any authenticated user
    PUT  loyalty/settings                      - admin/manager
    GET  loyalty/transactions/<customer_id>    - any authenticated user
    POST loyalty/adjust/<customer_id>          - admin/manager

Every response is {"success": true, "data": ...} or
{"success": false, "error": ..., "message": ...}.
"""

from __future__ import annotations

import json
import logging
import math

from django.http import JsonResponse
from django.views import View

from pointledger.conf import ledger_settings
from pointledger.exceptions import (
    AuthorizationError,
    LedgerError,
    NotAuthenticatedError,
    StorageError,
    ValidationError,
)
from pointledger.serializers import (
    customer_summary,
    settings_from_payload,
    settings_to_dict,
    transaction_to_dict,
)
from pointledger.service import LoyaltyService
from pointledger.services import history

logger = logging.getLogger("pointledger.api")


def _ok(data) -> JsonResponse:
    return JsonResponse({"success": True, "data": data})


def _error(exc: LedgerError) -> JsonResponse:
    if isinstance(exc, StorageError):
        error = "Server Error"
    else:
        error = exc.message
    return JsonResponse(
        {"success": False, "error": error, "message": exc.message, "code": exc.code},
        status=exc.status_code,
    )


def _require_user(request):
    if not request.user.is_authenticated:
        raise NotAuthenticatedError()


def _require_manager(request):
    _require_user(request)
    user = request.user
    if user.is_superuser:
        return
    if not user.groups.filter(name__in=ledger_settings.MANAGER_ROLES).exists():
        logger.warning("User %s denied loyalty management action", user.pk)
        raise AuthorizationError()


def _json_body(request) -> dict:
    try:
        data = json.loads(request.body or b"{}")
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError(message="Invalid JSON")
    if not isinstance(data, dict):
        raise ValidationError(message="Request body must be a JSON object")
    return data


def _positive_int(value, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def _points(value):
    """Accept ints and integer strings ("-50"); anything else is rejected by the gate."""
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return value
    return value


class LedgerApiView(View):
    """Maps LedgerError to the JSON error shape."""

    def dispatch(self, request, *args, **kwargs):
        try:
            return super().dispatch(request, *args, **kwargs)
        except LedgerError as exc:
            if exc.status_code >= 500:
                logger.error("Loyalty API %s %s failed: %s", request.method, request.path, exc)
            return _error(exc)
        except Exception:
            logger.exception("Loyalty API %s %s crashed", request.method, request.path)
            return JsonResponse(
                {"success": False, "error": "Server Error", "message": "Unexpected error"},
                status=500,
            )


class LoyaltySettingsView(LedgerApiView):
    def get(self, request):
        _require_user(request)
        return _ok(settings_to_dict(LoyaltyService.get_settings()))

    def put(self, request):
        _require_manager(request)
        values = settings_from_payload(_json_body(request))
        program = LoyaltyService.update_settings(values, updated_by=request.user)
        return _ok(settings_to_dict(program))


class CustomerTransactionsView(LedgerApiView):
    def get(self, request, customer_id):
        _require_user(request)
        customer = history.get_customer(customer_id)

        page = _positive_int(request.GET.get("page"), 1)
        limit = min(
            _positive_int(request.GET.get("limit"), ledger_settings.DEFAULT_PAGE_SIZE),
            ledger_settings.MAX_PAGE_SIZE,
        )
        filters = {
            "start_date": request.GET.get("startDate") or None,
            "end_date": request.GET.get("endDate") or None,
            "type": request.GET.get("type") or None,
        }

        transactions = LoyaltyService.get_customer_transactions(
            customer.pk, limit=limit, skip=(page - 1) * limit, **filters
        )
        total = LoyaltyService.count_transactions(customer.pk, **filters)

        return _ok(
            {
                "customer": customer_summary(customer),
                "transactions": [transaction_to_dict(t) for t in transactions],
                "pagination": {
                    "total": total,
                    "page": page,
                    "limit": limit,
                    "pages": math.ceil(total / limit),
                },
            }
        )


class AdjustPointsView(LedgerApiView):
    def post(self, request, customer_id):
        _require_manager(request)
        body = _json_body(request)
        points = _points(body.get("points"))
        reason = body.get("reason")
        if not points or not reason:
            raise ValidationError("POINTS_REQUIRED")

        result = LoyaltyService.adjust_points(customer_id, points, reason, request.user)
        return _ok(
            {
                "customer": customer_summary(result.customer),
                "transaction": transaction_to_dict(result.transaction),
            }
        )
