# Overview: Flask API routes for order operations; parses input and returns JSON responses.

# backend/drinkquick/routes/orders.py
"""
Orders API routes

Static paths (/stats, /dashboard/summary, /filter/...) are declared before
/<int:order_id> so they never shadow each other.
"""

from flask import Blueprint, current_app, g, request

from .. import responses
from ..decorators import require_auth, require_role
from ..enums import Role
from ..errors import DrinkQuickError, UnavailableError, ValidationError
from ..services import notification_service, order_service, pricing_service, stats_service
from ..services.mail_service import MailerError
from ..services.pagination import parse_page_args
from ..time_utils import resolve_timezone


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _caller_timezone():
    try:
        return resolve_timezone(request.args.get("tz"), current_app.config.get("DEFAULT_TIMEZONE", "UTC"))
    except ValueError as e:
        raise ValidationError.for_field("tz", str(e))


@orders_bp.post("")
@require_auth
def create_order_route():
    """
    Create an order from a cart.

    Body: {items: [{drink, quantity}], amountPaid, discount?, tax?,
    customerName?, customerEmail?, paymentMethod?, notes?}
    """
    try:
        order = pricing_service.assemble_order(g.current_user, request.get_json(silent=True))
        return responses.success(
            {"order": order.to_dict()},
            message="Order created successfully",
            status_code=201,
        )
    except DrinkQuickError as e:
        return responses.error_from_exception(e)
    except Exception:
        return responses.server_error("Failed to create order")


@orders_bp.get("")
@require_auth
def list_orders_route():
    """
    Query: page, limit, status, startDate, endDate, sort, all (admins only).
    """
    try:
        page, limit = parse_page_args(request.args)
        result = order_service.list_orders(
            g.current_user,
            page=page,
            limit=limit,
            status=request.args.get("status"),
            start_date=request.args.get("startDate"),
            end_date=request.args.get("endDate"),
            sort=request.args.get("sort"),
            all_owners=request.args.get("all", "").lower() == "true",
        )
        return responses.success(result)
    except DrinkQuickError as e:
        return responses.error_from_exception(e)
    except Exception:
        return responses.server_error("Failed to list orders")


@orders_bp.get("/stats")
@require_auth
def order_stats_route():
    try:
        return responses.success(stats_service.order_stats(g.current_user, _caller_timezone()))
    except DrinkQuickError as e:
        return responses.error_from_exception(e)
    except Exception:
        return responses.server_error("Failed to compute order stats")


@orders_bp.get("/dashboard/summary")
@require_auth
def dashboard_summary_route():
    try:
        return responses.success(stats_service.dashboard_summary(g.current_user, _caller_timezone()))
    except DrinkQuickError as e:
        return responses.error_from_exception(e)
    except Exception:
        return responses.server_error("Failed to compute dashboard summary")


@orders_bp.get("/filter/date")
@require_auth
def orders_by_date_route():
    try:
        result = order_service.orders_by_date_range(
            g.current_user,
            request.args.get("startDate"),
            request.args.get("endDate"),
        )
        return responses.success(result)
    except DrinkQuickError as e:
        return responses.error_from_exception(e)
    except Exception:
        return responses.server_error("Failed to filter orders by date")


@orders_bp.get("/filter/status/<status>")
@require_auth
def orders_by_status_route(status: str):
    try:
        return responses.success(order_service.orders_by_status(g.current_user, status))
    except DrinkQuickError as e:
        return responses.error_from_exception(e)
    except Exception:
        return responses.server_error("Failed to filter orders by status")


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id, g.current_user)
        return responses.success({"order": order.to_dict()})
    except DrinkQuickError as e:
        return responses.error_from_exception(e)
    except Exception:
        return responses.server_error("Failed to get order")


@orders_bp.put("/<int:order_id>")
@require_auth
def update_order_route(order_id: int):
    try:
        order = order_service.update_order(order_id, request.get_json(silent=True), g.current_user)
        return responses.success({"order": order.to_dict()}, message="Order updated successfully")
    except DrinkQuickError as e:
        return responses.error_from_exception(e)
    except Exception:
        return responses.server_error("Failed to update order")


@orders_bp.delete("/<int:order_id>")
@require_auth
@require_role(Role.ADMIN.value)
def delete_order_route(order_id: int):
    """Hard delete. Administrators only."""
    try:
        order_service.purge_order(order_id, g.current_user)
        return responses.success(message="Order deleted successfully")
    except DrinkQuickError as e:
        return responses.error_from_exception(e)
    except Exception:
        return responses.server_error("Failed to delete order")


@orders_bp.post("/<int:order_id>/invoice")
@require_auth
def invoice_route(order_id: int):
    try:
        result = order_service.generate_invoice(order_id, g.current_user)
        return responses.success(result, message="Invoice generated successfully")
    except DrinkQuickError as e:
        return responses.error_from_exception(e)
    except Exception:
        return responses.server_error("Failed to generate invoice")


@orders_bp.post("/<int:order_id>/send-email")
@require_auth
def send_email_route(order_id: int):
    """
    Send the confirmation synchronously (manual resend).

    Unlike the automatic confirmation, delivery failure is reported (503).
    """
    try:
        order = order_service.get_order(order_id, g.current_user)
        if not order.customer_email:
            return responses.error("Order has no customer email", 400)
        try:
            notification_service.send_order_email(order)
        except MailerError as e:
            current_app.logger.warning("Manual confirmation for order %s failed: %s", order_id, e)
            raise UnavailableError("Failed to send email")
        return responses.success(message="Order confirmation email sent successfully")
    except DrinkQuickError as e:
        return responses.error_from_exception(e)
    except Exception:
        return responses.server_error("Failed to send order email")
