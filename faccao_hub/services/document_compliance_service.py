# faccao_hub/services/document_compliance_service.py
# Documentos de conformidade das facções: CRUD, status derivado, checklist e resumos.

from collections import Counter
from datetime import datetime
from typing import Callable, Dict, Any, List, Optional, Iterable

from faccao_hub.database.company_repository import CompanyRepository
from faccao_hub.database.relationship_repository import RelationshipRepository
from faccao_hub.database.supplier_document_repository import (
    SupplierDocumentRepository, DUPLICATE_DOCUMENT_MESSAGE,
)
from faccao_hub.domain.actor import Actor, ActorRole
from faccao_hub.domain.filters import DocumentFilters
from faccao_hub.domain.payloads import validate_document_payload
from faccao_hub.domain.relationship import RelationshipStatus
from faccao_hub.domain.supplier_document import (
    SupplierDocument, SupplierDocumentType, DocumentStatus, compute_document_status,
    DEFAULT_EXPIRING_SOON_DAYS,
)
from faccao_hub.services.access import require_company, require_role, resolve_company_scope
from faccao_hub.services.unit_of_work import unit_of_work
from faccao_hub.utils.data_conversion import utc_now, isoformat_or_none
from faccao_hub.utils.logger import logger
from faccao_hub.api.errors import NotFoundError, ConflictError, ForbiddenError, ValidationError

def _empty_by_status() -> Dict[str, int]:
    return {status.value: 0 for status in DocumentStatus}

class DocumentComplianceService:
    """
    Camada de serviço para documentos de conformidade.

    O status de um documento nunca é lido do banco: toda leitura recalcula com
    compute_document_status(expires_at, has_file, now). Resumos são contagens sobre esse cálculo.
    """

    def __init__(self, document_repository: SupplierDocumentRepository,
                 relationship_repository: RelationshipRepository,
                 company_repository: CompanyRepository,
                 expiring_soon_days: int = DEFAULT_EXPIRING_SOON_DAYS,
                 clock: Callable[[], datetime] = utc_now):
        self.document_repository = document_repository
        self.relationship_repository = relationship_repository
        self.company_repository = company_repository
        self.expiring_soon_days = expiring_soon_days
        self.clock = clock
        logger.info(f"DocumentComplianceService inicializado (alerta de vencimento: {expiring_soon_days} dias).")

    def compute_status(self, document: SupplierDocument, now: Optional[datetime] = None) -> DocumentStatus:
        return compute_document_status(document.expires_at, document.has_file,
                                       now or self.clock(), self.expiring_soon_days)

    def serialize(self, document: SupplierDocument, now: Optional[datetime] = None) -> Dict[str, Any]:
        return document.to_dict(now or self.clock(), self.expiring_soon_days)

    # --- Acesso ---

    def _ensure_can_read(self, db, actor: Actor, company_id: str):
        """Facção lê os próprios; marca só com relacionamento aberto e consentimento ativo."""
        if actor.is_admin or (actor.is_supplier and actor.company_id == company_id):
            return
        if actor.is_brand:
            rel = self.relationship_repository.find_open_for_pair(db, actor.company_id, company_id)
            if rel and rel.document_sharing_consent and rel.status != RelationshipStatus.TERMINATED:
                return
            logger.warning(f"Marca {actor.company_id} sem consentimento para ver documentos da facção {company_id}.")
            raise ForbiddenError("The supplier has not granted document sharing consent to this brand.")
        raise ForbiddenError("You do not have access to these documents.")

    def _load_owned(self, db, document_id: str, actor: Actor) -> SupplierDocument:
        document = self.document_repository.find_by_id(db, document_id)
        if not document:
            raise NotFoundError(f"Document {document_id} not found.")
        require_company(actor, document.company_id, "Only the supplier that owns the document can change it.")
        return document

    # --- CRUD ---

    def create_document(self, data: Dict[str, Any], actor: Actor, company_id: Optional[str] = None) -> SupplierDocument:
        """Cria o registro do documento; o arquivo pode vir junto ou depois (attach_file)."""
        company_id = resolve_company_scope(actor, ActorRole.SUPPLIER, company_id)
        fields = validate_document_payload(data)
        if fields.get('file_name') and not fields.get('file_url'):
            raise ValidationError("'file_url' is required when 'file_name' is given.", payload={'field': 'file_url'})
        with unit_of_work("criar documento") as db:
            if not self.company_repository.find_active_supplier(db, company_id):
                raise NotFoundError(f"Supplier {company_id} not found.")
            if self.document_repository.find_duplicate(db, company_id, fields['type'],
                                                       fields['competence_month'], fields['competence_year']):
                raise ConflictError(DUPLICATE_DOCUMENT_MESSAGE, payload={'type': fields['type'].value})
            now = self.clock()
            document = SupplierDocument(
                company_id=company_id,
                uploaded_by_id=actor.id if fields.get('file_url') else None,
                created_at=now,
                updated_at=now,
                **fields,
            )
            self.document_repository.add(db, document)
        logger.info(f"Documento {document.type.value} ({document.id}) criado para a empresa {company_id} por {actor.id}.")
        return document

    def attach_file(self, document_id: str, file_url: Optional[str], file_name: Optional[str],
                    actor: Actor, expires_at: Any = None) -> SupplierDocument:
        """Anexa (ou substitui) o arquivo do documento. Reinicia os alertas de vencimento."""
        payload = {'file_url': file_url, 'file_name': file_name}
        if expires_at is not None:
            payload['expires_at'] = expires_at
        fields = validate_document_payload(payload, partial=True)
        if not fields.get('file_url'):
            raise ValidationError("'file_url' is required.", payload={'field': 'file_url'})
        with unit_of_work("anexar arquivo ao documento") as db:
            document = self._load_owned(db, document_id, actor)
            for name, value in fields.items():
                setattr(document, name, value)
            document.uploaded_by_id = actor.id
            document.last_expiry_alert_days = None
            document.updated_at = self.clock()
            self.document_repository.save(db, document)
        logger.info(f"Arquivo anexado ao documento {document_id} por {actor.id}.")
        return document

    def update_document(self, document_id: str, data: Dict[str, Any], actor: Actor) -> SupplierDocument:
        fields = validate_document_payload(data, partial=True)
        with unit_of_work("atualizar documento") as db:
            document = self._load_owned(db, document_id, actor)
            if 'expires_at' in fields and fields['expires_at'] != document.expires_at:
                document.last_expiry_alert_days = None
            for name, value in fields.items():
                setattr(document, name, value)
            document.updated_at = self.clock()
            self.document_repository.save(db, document)
        logger.info(f"Documento {document_id} atualizado por {actor.id}: campos {sorted(fields)}.")
        return document

    def delete_document(self, document_id: str, actor: Actor):
        with unit_of_work("excluir documento") as db:
            document = self._load_owned(db, document_id, actor)
            self.document_repository.delete(db, document)
        logger.info(f"Documento {document_id} excluído por {actor.id}.")

    def get_document(self, document_id: str, actor: Actor) -> SupplierDocument:
        with unit_of_work("buscar documento") as db:
            document = self.document_repository.find_by_id(db, document_id)
            if not document:
                raise NotFoundError(f"Document {document_id} not found.")
            self._ensure_can_read(db, actor, document.company_id)
            return document

    # --- Consultas ---

    def list_documents(self, actor: Actor, filters: Optional[DocumentFilters] = None) -> List[Dict[str, Any]]:
        """Lista com status recalculado; o filtro de status é aplicado depois do cálculo."""
        filters = filters or DocumentFilters()
        company_id = filters.company_id
        if actor.is_supplier:
            company_id = company_id or actor.company_id
        elif actor.is_brand and not company_id:
            raise ValidationError("'company_id' is required to list a supplier's documents.", payload={'field': 'company_id'})
        now = self.clock()
        with unit_of_work("listar documentos") as db:
            if company_id:
                self._ensure_can_read(db, actor, company_id)
            documents = self.document_repository.list_documents(db, company_id=company_id, doc_type=filters.type)
        result = [self.serialize(d, now) for d in documents]
        if filters.status:
            result = [d for d in result if d['status'] == filters.status.value]
        logger.debug(f"{len(result)} documentos listados para o ator {actor.id}.")
        return result

    def checklist(self, actor: Actor, company_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Todos os tipos de documento com o status do documento mais recente de cada tipo."""
        company_id = company_id or (actor.company_id if actor.is_supplier else None)
        if not company_id:
            raise ValidationError("'company_id' is required.", payload={'field': 'company_id'})
        now = self.clock()
        with unit_of_work("montar checklist de documentos") as db:
            self._ensure_can_read(db, actor, company_id)
            documents = self.document_repository.list_documents(db, company_id=company_id)
        # list_documents já ordena pela competência mais recente dentro de cada tipo
        latest: Dict[SupplierDocumentType, SupplierDocument] = {}
        for document in documents:
            latest.setdefault(document.type, document)
        items = []
        for doc_type in SupplierDocumentType:
            document = latest.get(doc_type)
            items.append({
                'type': doc_type.value,
                'document_id': document.id if document else None,
                'status': (self.compute_status(document, now) if document else DocumentStatus.PENDING).value,
                'expires_at': isoformat_or_none(document.expires_at) if document else None,
                'competence_month': document.competence_month if document else None,
                'competence_year': document.competence_year if document else None,
            })
        return items

    def _tally(self, documents: Iterable[SupplierDocument], now: datetime) -> Dict[str, Any]:
        counts = Counter(self.compute_status(d, now).value for d in documents)
        by_status = _empty_by_status()
        by_status.update(counts)
        return {'total': sum(counts.values()), 'by_status': by_status}

    def get_supplier_summary(self, actor: Actor, company_id: Optional[str] = None) -> Dict[str, Any]:
        company_id = company_id or (actor.company_id if actor.is_supplier else None)
        if not company_id:
            raise ValidationError("'company_id' is required.", payload={'field': 'company_id'})
        now = self.clock()
        with unit_of_work("resumir documentos da facção") as db:
            self._ensure_can_read(db, actor, company_id)
            documents = self.document_repository.list_documents(db, company_id=company_id)
        return {'company_id': company_id, **self._tally(documents, now)}

    def get_platform_summary(self, actor: Actor) -> Dict[str, Any]:
        """Visão da plataforma (ADMIN): totais gerais e por facção."""
        require_role(actor, ActorRole.ADMIN, "Only administrators can see the platform summary.")
        now = self.clock()
        with unit_of_work("resumir documentos da plataforma") as db:
            documents = self.document_repository.list_documents(db)
        per_company: Dict[str, List[SupplierDocument]] = {}
        for document in documents:
            per_company.setdefault(document.company_id, []).append(document)
        summary = self._tally(documents, now)
        summary['suppliers'] = [
            {'company_id': company_id, **self._tally(docs, now)}
            for company_id, docs in sorted(per_company.items())
        ]
        logger.info(f"Resumo de documentos da plataforma: {summary['total']} documentos, {len(per_company)} facções.")
        return summary
