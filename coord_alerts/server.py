"""
HTTP front door for Coord Alerts.

A small Flask app over a running AlertService:
1. Current points per category, ordered for the caller's position
2. Cache and rotation status
3. Manual full refresh
4. User position and alert subscription management

Run via `coord-alerts --mode serve`, which starts the scheduler alongside.
"""

import logging
from typing import Optional

from flask import Flask, abort, jsonify, request

from .models import Category, Position, Subscription
from .queries import query_points

logger = logging.getLogger(__name__)

MAX_DISPLAY = 25


def _category_or_404(name: str) -> Category:
    try:
        return Category(name.lower())
    except ValueError:
        abort(404, description=f"Unknown category: {name}")


def _optional_int(name: str) -> Optional[int]:
    value = request.args.get(name)
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError:
        abort(400, description=f"{name} must be an integer")


def create_app(service) -> Flask:
    """Create the Flask app bound to an AlertService."""
    app = Flask(__name__)

    @app.route("/points/<category>")
    def get_points(category: str):
        """
        Current points for a category.

        Position comes from ?x=&y=, or from the saved position of ?user=.
        """
        cat = _category_or_404(category)
        x, y = _optional_int("x"), _optional_int("y")
        level = _optional_int("level")

        position = None
        if x is not None and y is not None:
            position = Position(x=x, y=y)
        elif request.args.get("user"):
            position = service.store.get_user_position(request.args["user"])

        try:
            result = query_points(service.cache, cat, position, level)
        except ValueError as e:
            abort(400, description=str(e))

        body = result.to_dict(limit=MAX_DISPLAY)
        if not result.points:
            body["status"] = service.scheduler.get_status().to_dict()
        return jsonify(body)

    @app.route("/status")
    def get_status():
        """Cache counts, freshness and rotation state."""
        metadata = service.cache.metadata()
        return jsonify({
            "counts": {c.value: n for c, n in service.cache.counts().items()},
            "is_updating": metadata.is_updating,
            "is_valid": service.cache.is_valid(),
            "last_update": metadata.last_update.isoformat(),
            "next_update": metadata.next_update.isoformat(),
            "rotation": service.scheduler.get_status().to_dict(),
            "interval_seconds": int(service.scheduler.interval.total_seconds()),
        })

    @app.route("/refresh", methods=["POST"])
    def refresh():
        """Manual full refresh. 409 if a harvest is already running."""
        if service.cache.metadata().is_updating:
            return jsonify({"status": "busy"}), 409
        if not service.scheduler.force_full_refresh():
            return jsonify({"status": "skipped"}), 409
        return jsonify({
            "status": "ok",
            "counts": {c.value: n for c, n in service.cache.counts().items()},
        })

    @app.route("/users/<user_id>/position", methods=["PUT"])
    def set_position(user_id: str):
        data = request.get_json(silent=True) or {}
        try:
            x, y = int(data["x"]), int(data["y"])
        except (KeyError, TypeError, ValueError):
            abort(400, description="x and y are required integers")
        if not (0 <= x <= 9999 and 0 <= y <= 9999):
            abort(400, description="Coordinates must be between 0 and 9999")
        position = service.store.set_user_position(user_id, data.get("username", ""), x, y)
        return jsonify({"x": position.x, "y": position.y})

    @app.route("/users/<user_id>/alerts", methods=["GET"])
    def list_alerts(user_id: str):
        subs = service.store.get_user_subscriptions(user_id)
        return jsonify([s.to_dict() for s in subs])

    @app.route("/users/<user_id>/alerts/<category>", methods=["PUT"])
    def set_alert(user_id: str, category: str):
        cat = _category_or_404(category)
        data = request.get_json(silent=True) or {}
        min_power, max_power = data.get("min_power"), data.get("max_power")
        if (min_power is None) != (max_power is None):
            abort(400, description="min_power and max_power must be set together")
        if min_power is not None and not cat.carries_power:
            abort(400, description=f"{cat.display_name} points carry no power")
        sub = service.store.set_subscription(Subscription(
            user_id=user_id,
            category=cat,
            min_level=data.get("min_level"),
            max_distance=data.get("max_distance"),
            min_power=min_power,
            max_power=max_power,
            username=data.get("username", ""),
        ))
        return jsonify(sub.to_dict())

    @app.route("/users/<user_id>/alerts/<category>", methods=["PATCH"])
    def toggle_alert(user_id: str, category: str):
        cat = _category_or_404(category)
        data = request.get_json(silent=True) or {}
        if not service.store.set_subscription_enabled(user_id, cat, bool(data.get("enabled", True))):
            abort(404)
        return jsonify({"status": "ok"})

    @app.route("/users/<user_id>/alerts/<category>", methods=["DELETE"])
    def delete_alert(user_id: str, category: str):
        cat = _category_or_404(category)
        if not service.store.delete_subscription(user_id, cat):
            abort(404)
        return jsonify({"status": "deleted"})

    @app.route("/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "ok", "scheduler_running": service.scheduler.running}

    return app


def run_server(service, host: Optional[str] = None, port: Optional[int] = None, debug: bool = False):
    """Run the Flask server (blocking)."""
    host = host or service.config.server_host
    port = port or service.config.server_port
    logger.info(f"Starting front door on {host}:{port}")
    # The reloader would start a second scheduler
    create_app(service).run(host=host, port=port, debug=debug, use_reloader=False)
