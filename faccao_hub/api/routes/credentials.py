# faccao_hub/api/routes/credentials.py
# Endpoints do credenciamento de facções pela marca.

from flask import Blueprint, request, jsonify

from faccao_hub.api.decorators import brand_required
from faccao_hub.api.routes import get_service, json_body, current_actor, optional_arg
from faccao_hub.domain.filters import CredentialFilters
from faccao_hub.utils.logger import logger

credentials_bp = Blueprint('credentials', __name__)

@credentials_bp.route('', methods=['POST'])
@brand_required
def create_credential():
    actor = current_actor()
    logger.info(f"Create credential request by {actor.id}")
    credential = get_service('credential_service').create(json_body(), actor, brand_id=optional_arg('brand_id'))
    return jsonify(credential.to_dict()), 201

@credentials_bp.route('', methods=['GET'])
@brand_required
def list_credentials():
    filters = CredentialFilters.from_dict(request.args)
    result = get_service('credential_service').list(current_actor(), filters, brand_id=optional_arg('brand_id'))
    return jsonify(result), 200

@credentials_bp.route('/stats', methods=['GET'])
@brand_required
def credential_stats():
    stats = get_service('credential_service').get_stats(current_actor(), brand_id=optional_arg('brand_id'))
    return jsonify(stats), 200

@credentials_bp.route('/<string:credential_id>', methods=['GET'])
@brand_required
def get_credential(credential_id: str):
    credential = get_service('credential_service').get(credential_id, current_actor())
    return jsonify(credential.to_dict()), 200

@credentials_bp.route('/<string:credential_id>', methods=['PATCH'])
@brand_required
def update_credential(credential_id: str):
    credential = get_service('credential_service').update(credential_id, json_body(), current_actor())
    return jsonify(credential.to_dict()), 200

@credentials_bp.route('/<string:credential_id>', methods=['DELETE'])
@brand_required
def remove_credential(credential_id: str):
    credential = get_service('credential_service').remove(credential_id, current_actor())
    return jsonify(credential.to_dict()), 200

@credentials_bp.route('/<string:credential_id>/status', methods=['PATCH'])
@brand_required
def change_credential_status(credential_id: str):
    data = json_body()
    credential = get_service('credential_service').change_status(
        credential_id, data.get('status'), current_actor(), reason=data.get('reason')
    )
    return jsonify(credential.to_dict()), 200

@credentials_bp.route('/<string:credential_id>/history', methods=['GET'])
@brand_required
def credential_history(credential_id: str):
    history = get_service('credential_service').get_history(credential_id, current_actor())
    return jsonify([h.to_dict() for h in history]), 200

@credentials_bp.route('/<string:credential_id>/validate', methods=['POST'])
@brand_required
def validate_credential(credential_id: str):
    logger.info(f"CNPJ validation request for credential {credential_id}")
    result = get_service('credential_validation_service').start_validation(credential_id, current_actor())
    return jsonify(result), 200

@credentials_bp.route('/<string:credential_id>/validations', methods=['GET'])
@brand_required
def credential_validations(credential_id: str):
    validations = get_service('credential_validation_service').get_validations(credential_id, current_actor())
    return jsonify([v.to_dict() for v in validations]), 200
