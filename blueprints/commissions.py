#======================================================================================
#
# COMMISSIONS API  (/api/commissions)
#
#=======================================================================================
from flask import Blueprint, jsonify, request, current_app
from flask_login import current_user
from werkzeug.exceptions import HTTPException, BadRequest

from extensions import db
from auth import auth_required, admin_required, caller_identity
from commissions.errors import handle_db_error
from commissions.filters import CommissionQueryParams
from commissions.services import CommissionService

bp = Blueprint('commissions', __name__, url_prefix='/api/commissions')


def _query_params():
    return CommissionQueryParams.from_args(
        request.args,
        default_limit=current_app.config.get("COMMISSIONS_PAGE_LIMIT", 20),
        max_limit=current_app.config.get("COMMISSIONS_MAX_PAGE_LIMIT", 100),
    )


def _json_body():
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise BadRequest("Request body must be a JSON object")
    return body


# ----------------------------------------------------------------------------------
# GET /api/commissions: all commissions (admin only)
# ----------------------------------------------------------------------------------
@bp.route("", methods=["GET"])
@admin_required
def list_commissions():
    try:
        result = CommissionService(db.session).list_commissions(_query_params())
        return jsonify(result), 200
    except HTTPException:
        raise
    except Exception as e:
        return handle_db_error(e, "getting commissions", db.session)


# ----------------------------------------------------------------------------------
# GET /api/commissions/user/<user_id>: one user's commissions + stats
# ----------------------------------------------------------------------------------
@bp.route("/user/<user_id>", methods=["GET"])
@auth_required
def list_user_commissions(user_id):
    try:
        is_admin = current_user.is_authenticated and current_user.is_admin
        result = CommissionService(db.session).list_user_commissions(
            user_id,
            _query_params(),
            caller_sub=caller_identity(),
            is_admin=is_admin,
        )
        return jsonify(result), 200
    except HTTPException:
        raise
    except Exception as e:
        return handle_db_error(e, "getting user commissions", db.session)


# ----------------------------------------------------------------------------------
# GET /api/commissions/stats: platform-wide statistics (admin only)
# ----------------------------------------------------------------------------------
@bp.route("/stats", methods=["GET"])
@admin_required
def commission_stats():
    try:
        return jsonify(CommissionService(db.session).overall_stats()), 200
    except HTTPException:
        raise
    except Exception as e:
        return handle_db_error(e, "getting commission stats", db.session)


# ----------------------------------------------------------------------------------
# POST /api/commissions/process-transaction (admin only)
# ----------------------------------------------------------------------------------
@bp.route("/process-transaction", methods=["POST"])
@admin_required
def process_transaction():
    try:
        result = CommissionService(db.session).process_transaction(_json_body())
        return jsonify(result), 200
    except HTTPException:
        raise
    except Exception as e:
        return handle_db_error(e, "processing transaction", db.session)


# ----------------------------------------------------------------------------------
# PUT /api/commissions/pay: mark commissions as paid (admin only)
# ----------------------------------------------------------------------------------
@bp.route("/pay", methods=["PUT"])
@admin_required
def pay_commissions():
    try:
        body = _json_body()
        result = CommissionService(db.session).pay_commissions(
            body.get("commissionIds"),
            payment_reference=body.get("paymentReference"),
            payment_notes=body.get("paymentNotes"),
        )
        return jsonify(result), 200
    except HTTPException:
        raise
    except Exception as e:
        return handle_db_error(e, "paying commissions", db.session)
