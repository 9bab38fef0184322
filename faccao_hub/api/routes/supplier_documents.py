# faccao_hub/api/routes/supplier_documents.py
# Endpoints dos documentos de conformidade (status sempre recalculado na resposta).

from flask import Blueprint, request, jsonify

from faccao_hub.api.decorators import login_required, supplier_required, admin_required
from faccao_hub.api.routes import get_service, json_body, current_actor, optional_arg
from faccao_hub.domain.filters import DocumentFilters
from faccao_hub.utils.logger import logger

supplier_documents_bp = Blueprint('supplier_documents', __name__)

def _service():
    return get_service('document_compliance_service')

@supplier_documents_bp.route('', methods=['GET'])
@login_required
def list_documents():
    filters = DocumentFilters.from_dict(request.args)
    return jsonify(_service().list_documents(current_actor(), filters)), 200

@supplier_documents_bp.route('', methods=['POST'])
@supplier_required
def create_document():
    service = _service()
    document = service.create_document(json_body(), current_actor(), company_id=optional_arg('company_id'))
    return jsonify(service.serialize(document)), 201

@supplier_documents_bp.route('/checklist', methods=['GET'])
@login_required
def checklist():
    return jsonify(_service().checklist(current_actor(), company_id=optional_arg('company_id'))), 200

@supplier_documents_bp.route('/summary', methods=['GET'])
@login_required
def supplier_summary():
    return jsonify(_service().get_supplier_summary(current_actor(), company_id=optional_arg('company_id'))), 200

@supplier_documents_bp.route('/platform-summary', methods=['GET'])
@admin_required
def platform_summary():
    return jsonify(_service().get_platform_summary(current_actor())), 200

@supplier_documents_bp.route('/<string:document_id>', methods=['GET'])
@login_required
def get_document(document_id: str):
    service = _service()
    return jsonify(service.serialize(service.get_document(document_id, current_actor()))), 200

@supplier_documents_bp.route('/<string:document_id>', methods=['PATCH'])
@supplier_required
def update_document(document_id: str):
    service = _service()
    document = service.update_document(document_id, json_body(), current_actor())
    return jsonify(service.serialize(document)), 200

@supplier_documents_bp.route('/<string:document_id>/file', methods=['PUT'])
@supplier_required
def attach_file(document_id: str):
    data = json_body()
    service = _service()
    logger.info(f"Attach file to document {document_id} by {current_actor().id}")
    document = service.attach_file(document_id, data.get('file_url'), data.get('file_name'), current_actor(),
                                   expires_at=data.get('expires_at'))
    return jsonify(service.serialize(document)), 200

@supplier_documents_bp.route('/<string:document_id>', methods=['DELETE'])
@supplier_required
def delete_document(document_id: str):
    _service().delete_document(document_id, current_actor())
    return jsonify({'message': 'Document deleted.', 'id': document_id}), 200
