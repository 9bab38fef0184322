# faccao_hub/config/__init__.py
# Makes 'config' a package. Exports relevant items.

from .settings import config, Config, load_config, TRANSITION_POLICIES

__all__ = ["config", "Config", "load_config", "TRANSITION_POLICIES"]
