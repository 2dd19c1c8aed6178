"""HTTP handlers for inspecting and reloading the published policies.

Endpoints:
  GET  /health                      — Liveness probe
  GET  /api/policies                — List the published policies
  GET  /api/policies/status         — Reload bookkeeping of the ConfigManager
  POST /api/policies/reload         — Run a reload check now
  GET  /api/policies/<path:name>    — Get one policy by source path

The ConfigManager is taken from app.config["CONFIG_MANAGER"].
"""

import logging

from flask import Blueprint, current_app, jsonify

logger = logging.getLogger(__name__)

policies_bp = Blueprint("policies", __name__)


def _manager():
    return current_app.config["CONFIG_MANAGER"]


@policies_bp.route("/health", methods=["GET"])
def health():
    return jsonify({"status": "ok"}), 200


@policies_bp.route("/api/policies", methods=["GET"])
def list_policies():
    policy_set = _manager().get_all_policies()
    return jsonify({
        "generation": policy_set.generation,
        "source": policy_set.source,
        "policies": [p.to_dict() for p in policy_set],
    }), 200


@policies_bp.route("/api/policies/status", methods=["GET"])
def reload_status():
    return jsonify(_manager().status()), 200


@policies_bp.route("/api/policies/reload", methods=["POST"])
def trigger_reload():
    manager = _manager()
    reloaded = manager.reload_configs_if_necessary()
    generation = manager.get_all_policies().generation
    logger.info("Manual reload check: reloaded=%s generation=%d", reloaded, generation)
    return jsonify({"reloaded": reloaded, "generation": generation}), 200


@policies_bp.route("/api/policies/<path:name>", methods=["GET"])
def get_policy(name):
    policy_set = _manager().get_all_policies()
    # <path:...> drops the leading slash of absolute source paths
    policy = policy_set.get(name) or policy_set.get("/" + name)
    if policy is None:
        return jsonify({"error": f"Policy '{name}' not found"}), 404
    return jsonify(policy.to_dict()), 200
