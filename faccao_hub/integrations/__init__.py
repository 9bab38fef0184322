# faccao_hub/integrations/__init__.py
# Clientes de serviços externos (consulta de CNPJ).

from .cnpj_lookup_service import CnpjLookupService, CnpjLookupResult, CnpjData, is_valid_cnpj

__all__ = ["CnpjLookupService", "CnpjLookupResult", "CnpjData", "is_valid_cnpj"]
