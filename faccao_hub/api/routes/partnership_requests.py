# faccao_hub/api/routes/partnership_requests.py
# Endpoints das solicitações de parceria (marca -> facção).

from flask import Blueprint, request, jsonify

from faccao_hub.api.decorators import login_required, brand_required, supplier_required
from faccao_hub.api.errors import ValidationError
from faccao_hub.api.routes import get_service, json_body, current_actor, optional_arg
from faccao_hub.domain.filters import PartnershipRequestFilters
from faccao_hub.utils.logger import logger

partnership_requests_bp = Blueprint('partnership_requests', __name__)

def _service():
    return get_service('partnership_request_service')

@partnership_requests_bp.route('', methods=['POST'])
@brand_required
def create_request():
    data = json_body()
    actor = current_actor()
    logger.info(f"Partnership request by {actor.id} to supplier {data.get('supplier_id')}")
    partnership_request = _service().create(actor, data.get('supplier_id'), data.get('message'),
                                            brand_id=data.get('brand_id'))
    return jsonify(partnership_request.to_dict()), 201

@partnership_requests_bp.route('/sent', methods=['GET'])
@brand_required
def sent_requests():
    filters = PartnershipRequestFilters.from_dict(request.args)
    return jsonify(_service().get_sent(current_actor(), filters, brand_id=optional_arg('brand_id'))), 200

@partnership_requests_bp.route('/received', methods=['GET'])
@supplier_required
def received_requests():
    filters = PartnershipRequestFilters.from_dict(request.args)
    return jsonify(_service().get_received(current_actor(), filters, supplier_id=optional_arg('supplier_id'))), 200

@partnership_requests_bp.route('/pending-count', methods=['GET'])
@supplier_required
def pending_count():
    count = _service().get_pending_count(current_actor(), supplier_id=optional_arg('supplier_id'))
    return jsonify({'count': count}), 200

@partnership_requests_bp.route('/check/<string:supplier_id>', methods=['GET'])
@brand_required
def check_existing(supplier_id: str):
    return jsonify(_service().check_existing(current_actor(), supplier_id, brand_id=optional_arg('brand_id'))), 200

@partnership_requests_bp.route('/<string:request_id>', methods=['GET'])
@login_required
def get_request(request_id: str):
    service = _service()
    partnership_request = service.get_by_id(request_id, current_actor())
    return jsonify(partnership_request.to_dict(now=service.clock())), 200

@partnership_requests_bp.route('/<string:request_id>/respond', methods=['POST'])
@supplier_required
def respond_request(request_id: str):
    data = json_body()
    if 'accepted' not in data:
        raise ValidationError("'accepted' is required.", payload={'field': 'accepted'})
    partnership_request = _service().respond(
        request_id, current_actor(), data['accepted'],
        rejection_reason=data.get('rejection_reason'),
        document_sharing_consent=data.get('document_sharing_consent', False),
    )
    return jsonify(partnership_request.to_dict()), 200

@partnership_requests_bp.route('/<string:request_id>/cancel', methods=['POST'])
@brand_required
def cancel_request(request_id: str):
    partnership_request = _service().cancel(request_id, current_actor())
    return jsonify(partnership_request.to_dict()), 200
