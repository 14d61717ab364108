"""
Record routes: directory listing and the gated "open detail" action.
"""
import logging
from flask import Blueprint, request, jsonify

from app.quota.gate import LimitGate
from app.quota.models import QuotaContentionError
from .models import AGENCY_FILTER_COLUMNS, ITEMS_PER_PAGE, paginate
from .services import AgencyDirectory, ContactDirectory

logger = logging.getLogger(__name__)


def _page_args() -> dict:
    return {
        "page": request.args.get("page", 1, type=int),
        "per_page": request.args.get("per_page", ITEMS_PER_PAGE, type=int),
    }


def create_records_blueprint(directory: ContactDirectory, gate: LimitGate, user_service) -> Blueprint:
    """Create records blueprint with routes.

    Args:
        directory: Contact listing and lookup
        gate: Daily unlock gate
        user_service: Identity provider resolving the current user id

    Returns:
        Flask blueprint with record routes
    """
    bp = Blueprint('records', __name__, url_prefix='/api/records')

    @bp.route("", methods=["GET"])
    def list_records():
        """List one page of rows with viewed/locked state for today.

        Query args: q, agency_id, department, viewed_only, page, per_page.
        """
        uid, error = user_service.require_auth_json()
        if error:
            return jsonify(error), 401

        day = gate.today()
        viewed_ids = gate.viewed_set.ids(uid, day)
        limit_reached = gate.ledger.is_limit_reached(uid, day)
        viewed_only = request.args.get("viewed_only", "").lower() in ("1", "true", "yes")

        rows = directory.list_rows(
            viewed_ids,
            limit_reached,
            viewed_only=viewed_only,
            q=request.args.get("q"),
            agency=request.args.get("agency_id"),
            department=request.args.get("department")
        )
        payload = paginate(rows, **_page_args())
        payload.update({
            "day": day,
            "limit_reached": limit_reached,
            "filter_options": directory.filter_options()
        })
        return jsonify(payload)

    @bp.route("/<record_id>/open", methods=["POST"])
    def open_record(record_id):
        """Open a record's detail view, unlocking it if today's quota allows."""
        uid, error = user_service.require_auth_json()
        if error:
            return jsonify(error), 401

        record = directory.get(record_id)
        if record is None:
            return jsonify({"error": "not-found"}), 404

        day = gate.today()
        try:
            result = gate.request_access(uid, day, record_id, snapshot=record)
        except QuotaContentionError as exc:
            logger.error(f"Quota write contention for {uid}: {exc}")
            return jsonify({"error": "busy", "message": "Please try again."}), 503

        usage = gate.current_usage(uid, day)

        if not result.allowed:
            return jsonify({
                "status": "blocked",
                "message": (
                    f"You have reached your daily limit of {usage.cap} records. "
                    f"Your limit resets in {usage.resets_in}."
                ),
                "resets_in": usage.resets_in,
                "result": result.to_dict(),
                "usage": usage.to_dict()
            }), 403

        return jsonify({
            "status": "allowed",
            "id": str(record_id),
            "record": directory.detail(record),
            "result": result.to_dict(),
            "usage": usage.to_dict()
        })

    return bp


def create_agencies_blueprint(directory: AgencyDirectory, user_service) -> Blueprint:
    """Create agencies blueprint. Agency details are not quota-gated."""
    bp = Blueprint('agencies', __name__, url_prefix='/api/agencies')

    @bp.route("", methods=["GET"])
    def list_agencies():
        """List one page of agencies. Query args: q, state, type, county, page, per_page."""
        uid, error = user_service.require_auth_json()
        if error:
            return jsonify(error), 401

        filters = {column: request.args.get(column) for column in AGENCY_FILTER_COLUMNS}
        rows = directory.list_rows(q=request.args.get("q"), filters=filters)
        payload = paginate(rows, **_page_args())
        payload["filter_options"] = directory.filter_options()
        return jsonify(payload)

    @bp.route("/<agency_id>", methods=["GET"])
    def get_agency(agency_id):
        uid, error = user_service.require_auth_json()
        if error:
            return jsonify(error), 401

        agency = directory.get(agency_id)
        if agency is None:
            return jsonify({"error": "not-found"}), 404
        return jsonify({"id": str(agency_id), "record": directory.detail(agency)})

    return bp
