# Overview: Maps service outcomes to JSON responses with the right HTTP status.

from flask import jsonify

from .services.approval_state import ActionResult, WorkflowError


ERROR_STATUS = {
    "validation": 400,
    "not_authorized": 403,
    "not_found": 404,
    "invalid_state": 409,
}


def result_response(result: ActionResult, success_status: int = 200):
    """Serialize an ActionResult; failures get the status for their error kind."""
    if result.success:
        return jsonify(result.to_dict()), success_status
    return jsonify(result.to_dict()), ERROR_STATUS.get(result.error, 400)


def error_response(exc: WorkflowError):
    return jsonify({"error": str(exc), "kind": exc.kind}), ERROR_STATUS.get(exc.kind, 400)
