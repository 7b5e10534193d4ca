from flask import Blueprint, current_app, jsonify, request

from ..identity import require_auth
from ..services import reporting_service


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api")


@dashboard_bp.get("/dashboard")
@require_auth
def dashboard():
    period = request.args.get("period", "7d")
    report = reporting_service.dashboard(
        period,
        top_limit=current_app.config.get("DASHBOARD_TOP_LIMIT", 5),
    )
    return jsonify(report), 200
