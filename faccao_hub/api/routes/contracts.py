# faccao_hub/api/routes/contracts.py
# Endpoints por contrato: edição, envio, assinatura, recusa e revisões.

from flask import Blueprint, jsonify

from faccao_hub.api.decorators import login_required, brand_required, supplier_required
from faccao_hub.api.routes import get_service, json_body, current_actor

contracts_bp = Blueprint('contracts', __name__)

def _service():
    return get_service('contract_service')

@contracts_bp.route('/<string:contract_id>', methods=['GET'])
@login_required
def get_contract(contract_id: str):
    return jsonify(_service().get_by_id(contract_id, current_actor()).to_dict(include_revisions=True)), 200

@contracts_bp.route('/<string:contract_id>', methods=['PATCH'])
@brand_required
def update_contract(contract_id: str):
    contract = _service().update_contract(contract_id, json_body(), current_actor())
    return jsonify(contract.to_dict(include_revisions=True)), 200

@contracts_bp.route('/<string:contract_id>/send', methods=['POST'])
@brand_required
def send_contract(contract_id: str):
    data = json_body(required=False)
    contract = _service().send_for_signature(contract_id, current_actor(), message=data.get('message'))
    return jsonify(contract.to_dict(include_revisions=True)), 200

@contracts_bp.route('/<string:contract_id>/sign', methods=['POST'])
@login_required
def sign_contract(contract_id: str):
    data = json_body()
    contract = _service().sign_contract(contract_id, current_actor(), data.get('accepted'), data.get('signer_name'))
    return jsonify(contract.to_dict(include_revisions=True)), 200

@contracts_bp.route('/<string:contract_id>/reject', methods=['POST'])
@supplier_required
def reject_contract(contract_id: str):
    data = json_body(required=False)
    contract = _service().reject_contract(contract_id, current_actor(), reason=data.get('reason'))
    return jsonify(contract.to_dict(include_revisions=True)), 200

@contracts_bp.route('/<string:contract_id>/revisions', methods=['POST'])
@supplier_required
def request_revision(contract_id: str):
    data = json_body()
    revision = _service().request_revision(contract_id, data.get('message'), current_actor())
    return jsonify(revision.to_dict()), 201

@contracts_bp.route('/revisions/<string:revision_id>/respond', methods=['POST'])
@brand_required
def respond_revision(revision_id: str):
    data = json_body()
    revision = _service().respond_revision(revision_id, data.get('status'), current_actor(), notes=data.get('notes'))
    return jsonify(revision.to_dict()), 200
