"""
User administration routes under /api/settings
"""

from flask import Blueprint, request, jsonify, current_app
from flask_login import current_user
from auth_utils import api_login_required, admin_required
from utils.api_responses import error_response

user_bp = Blueprint('users', __name__, url_prefix='/api/settings')

USER_STATUS_CODES = {
    'CANNOT_MODIFY_SELF': 400,
    'INVALID_STATUS': 400,
    'LAST_ADMIN': 400,
    'INVALID_ROLE': 400,
    'INVALID_PROPERTIES': 400,
    'USER_NOT_FOUND': 404,
}


@user_bp.route('/users', methods=['GET'])
@admin_required
def list_users():
    result = current_app.services.get('user_management').list_users(current_user.organization_id)
    return jsonify({'users': result.data})


@user_bp.route('/users/<int:user_id>', methods=['DELETE'])
@admin_required
def deactivate_user(user_id):
    result = current_app.services.get('user_management').deactivate_user(current_user, user_id)
    if result.is_failure:
        return error_response(result, USER_STATUS_CODES)
    return jsonify(dict(result.data, success=True))


@user_bp.route('/users/<int:user_id>/role', methods=['PATCH'])
@admin_required
def change_user_role(user_id):
    data = request.get_json(silent=True) or {}
    result = current_app.services.get('user_management').change_role(current_user, user_id, data.get('roleId'))
    if result.is_failure:
        return error_response(result, USER_STATUS_CODES)
    return jsonify(dict(result.data, success=True))


@user_bp.route('/users/<int:user_id>/properties', methods=['GET'])
@admin_required
def get_user_properties(user_id):
    result = current_app.services.get('user_management').get_user_properties(current_user, user_id)
    if result.is_failure:
        return error_response(result, USER_STATUS_CODES)
    return jsonify({'properties': result.data})


@user_bp.route('/users/<int:user_id>/properties', methods=['PUT'])
@admin_required
def update_user_properties(user_id):
    data = request.get_json(silent=True) or {}
    result = current_app.services.get('user_management').update_user_properties(
        current_user, user_id, data.get('propertyIds')
    )
    if result.is_failure:
        return error_response(result, USER_STATUS_CODES)
    return jsonify(dict(result.data, success=True))


@user_bp.route('/roles', methods=['GET'])
@api_login_required
def list_roles():
    return jsonify({'roles': current_app.services.get('user_management').list_roles().data})


@user_bp.route('/properties', methods=['GET'])
@api_login_required
def list_properties():
    result = current_app.services.get('user_management').list_properties(current_user.organization_id)
    return jsonify({'properties': result.data})
