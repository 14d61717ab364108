"""
Quota routes: usage counters and today's viewed list for the current user.
"""

from flask import Blueprint, jsonify, request

from .gate import LimitGate
from .maintenance import prune_expired_keys


def create_quota_blueprint(gate: LimitGate, user_service, retention_days: int = 7) -> Blueprint:
    """Create quota blueprint with routes.

    Args:
        gate: The limit gate instance
        user_service: Identity provider resolving the current user id
        retention_days: Default retention window for the admin prune route

    Returns:
        Flask blueprint with quota routes
    """
    blueprint = Blueprint('quota', __name__, url_prefix='/api/quota')

    @blueprint.route('/usage', methods=['GET'])
    def usage():
        """Counters, sticky flag and reset countdown for today."""
        uid, error = user_service.require_auth_json()
        if error:
            return jsonify(error), 401

        snapshot = gate.current_usage(uid, gate.today())
        return jsonify(snapshot.to_dict())

    @blueprint.route('/viewed', methods=['GET'])
    def viewed():
        """Records unlocked today, in first-unlock order."""
        uid, error = user_service.require_auth_json()
        if error:
            return jsonify(error), 401

        day = gate.today()
        entries = gate.viewed_today(uid, day)
        return jsonify({
            "day": day,
            "count": len(entries),
            "viewed": [entry.to_dict() for entry in entries]
        })

    @blueprint.route('/admin/prune', methods=['POST'])
    def admin_prune():
        """Admin route to delete quota keys older than the retention window."""
        uid, error = user_service.require_auth_json()
        if error:
            return jsonify(error), 401

        if not user_service.is_admin_user(uid):
            return jsonify({"error": "unauthorized"}), 403

        days = request.args.get('retention_days', retention_days, type=int)
        dry_run = request.args.get('dry_run', '').lower() in ('1', 'true', 'yes')
        try:
            pruned = prune_expired_keys(gate.store, days, now=gate.clock(), dry_run=dry_run)
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400

        return jsonify({
            "status": "success",
            "dry_run": dry_run,
            "retention_days": days,
            "pruned": len(pruned),
            "keys": pruned
        })

    return blueprint
