from flask import Blueprint, current_app, jsonify

from pushtrello.admin.auth import admin_pin_required
from pushtrello.container import get_services
from pushtrello.errors import PayloadNotFound
from pushtrello.logging_config import get_logger
from pushtrello.services.dispatcher import JobNotFound, JobNotRetryable

logger = get_logger(__name__)

admin_bp = Blueprint("admin", __name__)


@admin_bp.route("/logview/", methods=["GET"])
@admin_pin_required
def log_view():
    """Recent errors as HTML; emails them to the admins when there are any."""
    digest = get_services(current_app).digest.run()
    return digest.render_html(), 200, {"Content-Type": "text/html; charset=utf-8"}


@admin_bp.route("/admin/payloads/<payload_id>/replay", methods=["POST"])
@admin_pin_required
def replay_payload(payload_id):
    services = get_services(current_app)
    try:
        job_id = services.batch_processor.replay(payload_id)
    except PayloadNotFound as e:
        return jsonify({'error': str(e)}), 404
    return jsonify({'status': 'queued', 'payload_id': payload_id, 'job_id': job_id}), 202


@admin_bp.route("/admin/jobs/<int:job_id>/retry", methods=["POST"])
@admin_pin_required
def retry_job(job_id):
    services = get_services(current_app)
    try:
        job = services.dispatcher.retry(job_id)
    except JobNotFound as e:
        return jsonify({'error': str(e)}), 404
    except JobNotRetryable as e:
        return jsonify({'error': str(e)}), 409
    return jsonify({'status': 'queued', 'job': job.to_dict()}), 202


@admin_bp.route("/admin/jobs/stats", methods=["GET"])
@admin_pin_required
def job_stats():
    return jsonify(get_services(current_app).dispatcher.stats())
