"""
REST API routes for Apex.

Provides JSON endpoints for:
- Bikes, rides and GPX downloads
- Fuel logs and mileage
- Maintenance schedules, logs and service history
- Notifications
- Update checks and bug report links
"""

import logging
from typing import Any

from flask import Blueprint, Response, current_app, jsonify, request

from ...analysis.fuel import FuelEntry, calculate_mileage, get_last_fuel_price
from ...analysis.health import calculate_health
from ...core.errors import (
    BackendError,
    BikeInUseError,
    ExportError,
    NotAuthenticatedError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
    friendly_error_message,
)
from ...core.models import parse_date, parse_datetime
from ...core.recorder import RideSummary
from ...services.bug_report import create_bug_report_payload
from ...services.container import Services
from ...services.gpx import generate_gpx, gpx_filename
from ...services.updates import AppUpdateChecker

logger = logging.getLogger(__name__)

bp = Blueprint("api", __name__)


def _services() -> Services:
    return current_app.config["services"]


def _body() -> dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError({"body": "Expected a JSON object"})
    return data


def _error(message: str, status: int, **extra: Any):
    return jsonify({"error": message, **extra}), status


# Error mapping


@bp.errorhandler(ValidationError)
def handle_validation(e: ValidationError):
    return _error(str(e), 400, field_errors=e.field_errors)


@bp.errorhandler(NotAuthenticatedError)
def handle_not_authenticated(e: NotAuthenticatedError):
    return _error(str(e), 401)


@bp.errorhandler(PermissionDeniedError)
def handle_permission_denied(e: PermissionDeniedError):
    return _error(str(e), 403)


@bp.errorhandler(NotFoundError)
def handle_not_found(e: NotFoundError):
    return _error(str(e), 404)


@bp.errorhandler(BikeInUseError)
def handle_bike_in_use(e: BikeInUseError):
    return _error(str(e), 409)


@bp.errorhandler(ExportError)
def handle_export(e: ExportError):
    status = 404 if "not found" in str(e).lower() else 400
    return _error(str(e), status)


@bp.errorhandler(BackendError)
def handle_backend(e: BackendError):
    logger.error(f"Backend error: {e.full_message()}")
    return _error(friendly_error_message(e), 502, code=e.code)


# Bikes


@bp.route("/bikes", methods=["GET"])
def list_bikes():
    return jsonify([bike.to_dict() for bike in _services().bikes.list()])


@bp.route("/bikes", methods=["POST"])
def create_bike():
    data = _body()
    bike = _services().bikes.create(
        data.get("make", ""),
        data.get("model", ""),
        data.get("current_odo", 0),
        **{k: v for k, v in data.items() if k not in ("make", "model", "current_odo")},
    )
    return jsonify(bike.to_dict()), 201


@bp.route("/bikes/<bike_id>", methods=["GET"])
def get_bike(bike_id: str):
    return jsonify(_services().bikes.get(bike_id).to_dict())


@bp.route("/bikes/<bike_id>", methods=["PATCH"])
def update_bike(bike_id: str):
    return jsonify(_services().bikes.update(bike_id, **_body()).to_dict())


@bp.route("/bikes/<bike_id>", methods=["DELETE"])
def delete_bike(bike_id: str):
    _services().bikes.delete(bike_id)
    return "", 204


@bp.route("/bikes/<bike_id>/mileage", methods=["GET"])
def bike_mileage(bike_id: str):
    """
    Fuel economy for a bike, computed from its fuel logs.

    Returns:
        JSON with avg_mileage (km/L or null) and last_fuel_price
    """
    services = _services()
    services.bikes.require_bike(bike_id)
    logs = services.fuel_logs.list(bike_id)
    return jsonify({
        "bike_id": bike_id,
        "avg_mileage": calculate_mileage(logs),
        "last_fuel_price": get_last_fuel_price(logs),
        "log_count": len(logs),
    })


# Rides


@bp.route("/rides", methods=["GET"])
def list_rides():
    limit = request.args.get("limit", 50, type=int)
    offset = request.args.get("offset", 0, type=int)
    rides = _services().rides.list(request.args.get("bike_id"), limit=limit, offset=offset)
    return jsonify([ride.to_dict() for ride in rides])


@bp.route("/rides", methods=["POST"])
def save_ride():
    """
    Save a ride recorded elsewhere.

    Accepts JSON with bike_id, start_time, end_time, distance_km,
    max_lean_left, max_lean_right and coordinates ([lon, lat] pairs).
    """
    data = _body()
    errors = {}
    for key in ("bike_id", "start_time", "end_time"):
        if not data.get(key):
            errors[key] = f"{key} is required"
    if errors:
        raise ValidationError(errors)

    try:
        summary = RideSummary(
            start_time=parse_datetime(data["start_time"]),
            end_time=parse_datetime(data["end_time"]),
            distance_km=float(data.get("distance_km", 0)),
            max_lean_left=float(data.get("max_lean_left", 0)),
            max_lean_right=float(data.get("max_lean_right", 0)),
            coordinates=[(float(lon), float(lat)) for lon, lat in data.get("coordinates") or []],
        )
    except (TypeError, ValueError) as e:
        raise ValidationError({"body": f"Invalid ride data: {e}"}) from e

    ride = _services().rides.save(summary, data["bike_id"])
    return jsonify(ride.to_dict()), 201


@bp.route("/rides/<ride_id>", methods=["GET"])
def get_ride(ride_id: str):
    return jsonify(_services().rides.get(ride_id).to_dict())


@bp.route("/rides/<ride_id>", methods=["PATCH"])
def update_ride(ride_id: str):
    data = _body()
    ride = _services().rides.update(ride_id, data.get("ride_name"), data.get("notes"))
    return jsonify(ride.to_dict())


@bp.route("/rides/<ride_id>", methods=["DELETE"])
def delete_ride(ride_id: str):
    _services().rides.delete(ride_id)
    return "", 204


@bp.route("/rides/<ride_id>/gpx", methods=["GET"])
def download_gpx(ride_id: str):
    """Download a ride as a GPX 1.1 file."""
    try:
        ride = _services().rides.get(ride_id)
    except NotFoundError as e:
        raise ExportError("Ride not found or you do not have permission to access it") from e
    document = generate_gpx(ride)
    return Response(
        document,
        mimetype="application/gpx+xml",
        headers={"Content-Disposition": f'attachment; filename="{gpx_filename(ride)}"'},
    )


# Fuel logs


def _fuel_entry(data: dict[str, Any]) -> FuelEntry:
    entry = FuelEntry(
        odometer=data.get("odometer", ""),
        litres=data.get("litres", ""),
        price_per_litre=data.get("price_per_litre", ""),
        total_cost=data.get("total_cost", ""),
        is_full_tank=bool(data.get("is_full_tank", False)),
    )
    if data.get("date"):
        entry.date = data["date"]
    return entry


@bp.route("/bikes/<bike_id>/fuel-logs", methods=["GET"])
def list_fuel_logs(bike_id: str):
    return jsonify([log.to_dict() for log in _services().fuel_logs.list(bike_id)])


@bp.route("/bikes/<bike_id>/fuel-logs", methods=["POST"])
def create_fuel_log(bike_id: str):
    log = _services().fuel_logs.create(bike_id, _fuel_entry(_body()))
    return jsonify(log.to_dict()), 201


@bp.route("/fuel-logs/<log_id>", methods=["PUT"])
def update_fuel_log(log_id: str):
    return jsonify(_services().fuel_logs.update(log_id, _fuel_entry(_body())).to_dict())


@bp.route("/fuel-logs/<log_id>", methods=["DELETE"])
def delete_fuel_log(log_id: str):
    _services().fuel_logs.delete(log_id)
    return "", 204


# Maintenance


@bp.route("/schedules", methods=["GET"])
def list_schedules():
    """
    Active maintenance schedules with part health.

    Query params:
        bike_id: Limit to one bike
    """
    services = _services()
    bike_id = request.args.get("bike_id")
    schedules = services.schedules.list(bike_id)
    odometers = {bike.id: bike.current_odo for bike in services.bikes.list()}

    payload = []
    for schedule in schedules:
        report = calculate_health(schedule, odometers.get(schedule.bike_id, 0))
        payload.append({**schedule.to_dict(), "health": report.to_dict()})
    return jsonify(payload)


@bp.route("/schedules", methods=["POST"])
def create_schedule():
    data = _body()
    schedule = _services().schedules.create(
        data.get("bike_id", ""),
        data.get("part_name", ""),
        interval_km=data.get("interval_km", 0),
        interval_months=data.get("interval_months", 0),
        last_service_date=data.get("last_service_date"),
        last_service_odo=data.get("last_service_odo"),
    )
    return jsonify(schedule.to_dict()), 201


@bp.route("/schedules/<schedule_id>", methods=["PATCH"])
def update_schedule(schedule_id: str):
    return jsonify(_services().schedules.update(schedule_id, **_body()).to_dict())


@bp.route("/schedules/<schedule_id>/complete", methods=["POST"])
def complete_schedule(schedule_id: str):
    """Record a completed service for a schedule."""
    data = _body()
    services = _services()
    schedule = services.schedules.get(schedule_id)
    updated = services.schedules.complete_service(
        schedule_id,
        schedule.bike_id,
        data.get("service_odo"),
        cost=data.get("cost"),
        notes=data.get("notes"),
        service_date=parse_date(data.get("service_date")),
    )
    return jsonify(updated.to_dict())


@bp.route("/service-history", methods=["GET"])
def list_service_history():
    history = _services().service_history.list(
        request.args.get("bike_id"), request.args.get("schedule_id")
    )
    return jsonify([entry.to_dict() for entry in history])


@bp.route("/maintenance-logs", methods=["GET"])
def list_maintenance_logs():
    logs = _services().maintenance_logs.list(request.args.get("bike_id"))
    return jsonify([log.to_dict() for log in logs])


@bp.route("/maintenance-logs", methods=["POST"])
def create_maintenance_log():
    data = _body()
    log = _services().maintenance_logs.create(
        data.get("bike_id", ""),
        data.get("service_type", ""),
        data.get("odo_at_service", ""),
        date_performed=data.get("date_performed"),
        notes=data.get("notes"),
        receipt_url=data.get("receipt_url"),
    )
    return jsonify(log.to_dict()), 201


@bp.route("/maintenance-logs/<log_id>", methods=["DELETE"])
def delete_maintenance_log(log_id: str):
    _services().maintenance_logs.delete(log_id)
    return "", 204


# Notifications


@bp.route("/notifications", methods=["GET"])
def list_notifications():
    notifications = _services().notifications.list()
    return jsonify({
        "notifications": [n.to_dict() for n in notifications],
        "unread_count": sum(1 for n in notifications if n.is_unread),
    })


@bp.route("/notifications/<notification_id>/read", methods=["POST"])
def mark_notification_read(notification_id: str):
    return jsonify({"updated": _services().notifications.mark_as_read(notification_id)})


@bp.route("/notifications/<notification_id>/dismiss", methods=["POST"])
def dismiss_notification(notification_id: str):
    return jsonify({"updated": _services().notifications.dismiss(notification_id)})


@bp.route("/notifications/read-all", methods=["POST"])
def mark_all_notifications_read():
    return jsonify({"updated": _services().notifications.mark_all_as_read()})


@bp.route("/notifications/dismiss-all", methods=["POST"])
def dismiss_all_notifications():
    return jsonify({"updated": _services().notifications.dismiss_all()})


# App


@bp.route("/update-check", methods=["GET"])
def update_check():
    """
    Check GitHub for a newer release.

    Query params:
        force: "1" to ignore the check interval and dismissed versions
    """
    config = current_app.config["APEX_CONFIG"]
    checker = AppUpdateChecker(
        _services().preferences,
        config.get("app.version", "0.4.0"),
        platform_type=request.args.get("platform", "desktop"),
        repo=config.get("updates.repo", "Purukitto/apex-app"),
        interval_hours=config.get("updates.check_interval_hours", 24),
        timeout=config.get("updates.timeout", 10),
    )
    info = checker.check(force=request.args.get("force") in ("1", "true"))
    if info is None:
        return jsonify({"is_available": False, "error": checker.last_error})
    return jsonify(info.to_dict())


@bp.route("/bug-report", methods=["GET"])
def bug_report():
    config = current_app.config["APEX_CONFIG"]
    url = create_bug_report_payload(
        current_app.config.get("LOG_BUFFER"),
        repo=config.get("bug_report.repo", "Purukitto/apex-app"),
        log_lines=config.get("bug_report.log_lines", 50),
    )
    return jsonify({"url": url})
