# faccao_hub/api/routes/relationships.py
# Endpoints do relacionamento marca <-> facção, contrato vigente e consentimento.

from flask import Blueprint, request, jsonify

from faccao_hub.api.decorators import login_required, brand_required, supplier_required
from faccao_hub.api.errors import ValidationError
from faccao_hub.api.routes import get_service, json_body, current_actor, optional_arg
from faccao_hub.domain.relationship import RelationshipStatus
from faccao_hub.utils.logger import logger

relationships_bp = Blueprint('relationships', __name__)

def _service():
    return get_service('relationship_service')

def _status_arg():
    raw = optional_arg('status')
    if not raw:
        return None
    try:
        return RelationshipStatus(raw.upper())
    except ValueError:
        raise ValidationError(f"Invalid relationship status '{raw}'.", payload={'field': 'status'})

@relationships_bp.route('', methods=['POST'])
@login_required
def create_relationship():
    data = json_body()
    relationship = _service().create(current_actor(), data.get('brand_id'), data.get('supplier_id'),
                                     {k: data[k] for k in ('internal_code', 'notes', 'priority') if k in data})
    return jsonify(relationship.to_dict()), 201

@relationships_bp.route('/brand', methods=['GET'])
@brand_required
def brand_relationships():
    items = _service().get_by_brand(current_actor(), brand_id=optional_arg('brand_id'), status=_status_arg())
    return jsonify([r.to_dict() for r in items]), 200

@relationships_bp.route('/supplier', methods=['GET'])
@supplier_required
def supplier_relationships():
    items = _service().get_by_supplier(current_actor(), supplier_id=optional_arg('supplier_id'), status=_status_arg())
    return jsonify([r.to_dict() for r in items]), 200

@relationships_bp.route('/available', methods=['GET'])
@brand_required
def available_suppliers():
    companies = _service().get_available_for_brand(current_actor(), brand_id=optional_arg('brand_id'))
    return jsonify([c.to_dict() for c in companies]), 200

@relationships_bp.route('/stats', methods=['GET'])
@brand_required
def relationship_stats():
    return jsonify(_service().get_stats(current_actor(), brand_id=optional_arg('brand_id'))), 200

@relationships_bp.route('/<string:relationship_id>', methods=['GET'])
@login_required
def get_relationship(relationship_id: str):
    return jsonify(_service().get_one(relationship_id, current_actor()).to_dict()), 200

@relationships_bp.route('/<string:relationship_id>', methods=['PATCH'])
@login_required
def update_relationship(relationship_id: str):
    relationship = _service().update(relationship_id, json_body(), current_actor())
    return jsonify(relationship.to_dict()), 200

@relationships_bp.route('/<string:relationship_id>/history', methods=['GET'])
@login_required
def relationship_history(relationship_id: str):
    history = _service().get_history(relationship_id, current_actor())
    return jsonify([h.to_dict() for h in history]), 200

@relationships_bp.route('/<string:relationship_id>/activate', methods=['POST'])
@login_required
def activate_relationship(relationship_id: str):
    return jsonify(_service().activate(relationship_id, current_actor()).to_dict()), 200

@relationships_bp.route('/<string:relationship_id>/suspend', methods=['POST'])
@brand_required
def suspend_relationship(relationship_id: str):
    data = json_body()
    logger.info(f"Suspend relationship {relationship_id} by {current_actor().id}")
    return jsonify(_service().suspend(relationship_id, current_actor(), data.get('reason')).to_dict()), 200

@relationships_bp.route('/<string:relationship_id>/reactivate', methods=['POST'])
@brand_required
def reactivate_relationship(relationship_id: str):
    return jsonify(_service().reactivate(relationship_id, current_actor()).to_dict()), 200

@relationships_bp.route('/<string:relationship_id>/terminate', methods=['POST'])
@login_required
def terminate_relationship(relationship_id: str):
    data = json_body()
    logger.info(f"Terminate relationship {relationship_id} by {current_actor().id}")
    return jsonify(_service().terminate(relationship_id, current_actor(), data.get('reason')).to_dict()), 200

# --- Contrato do relacionamento ---

@relationships_bp.route('/<string:relationship_id>/contract', methods=['POST'])
@brand_required
def generate_contract(relationship_id: str):
    contract = get_service('contract_service').generate_contract(relationship_id, json_body(required=False), current_actor())
    return jsonify(contract.to_dict(include_revisions=True)), 201

@relationships_bp.route('/<string:relationship_id>/contract', methods=['GET'])
@login_required
def get_contract(relationship_id: str):
    contract = get_service('contract_service').get_contract(relationship_id, current_actor())
    return jsonify(contract.to_dict(include_revisions=True)), 200

@relationships_bp.route('/<string:relationship_id>/contracts', methods=['GET'])
@login_required
def list_contracts(relationship_id: str):
    contracts = get_service('contract_service').list_contracts(relationship_id, current_actor())
    return jsonify([c.to_dict(include_revisions=True) for c in contracts]), 200

# --- Consentimento de compartilhamento de documentos ---

@relationships_bp.route('/<string:relationship_id>/consent', methods=['GET'])
@login_required
def consent_status(relationship_id: str):
    return jsonify(_service().get_consent_status(relationship_id, current_actor())), 200

@relationships_bp.route('/<string:relationship_id>/consent', methods=['PATCH'])
@supplier_required
def update_consent(relationship_id: str):
    data = json_body()
    return jsonify(_service().update_consent(relationship_id, data.get('consent'), current_actor())), 200

@relationships_bp.route('/<string:relationship_id>/consent/revoke', methods=['POST'])
@supplier_required
def revoke_consent(relationship_id: str):
    data = json_body()
    logger.info(f"Consent revocation on relationship {relationship_id} by {current_actor().id}")
    return jsonify(_service().revoke_consent(relationship_id, data.get('reason'), current_actor())), 200
