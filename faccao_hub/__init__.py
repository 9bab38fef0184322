# faccao_hub/__init__.py
# Partner lifecycle & compliance backend for the brand <-> facção marketplace.

__version__ = "0.1.0"
