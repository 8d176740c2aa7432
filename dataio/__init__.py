from .document_registry import DocumentRegistry, DocumentToken

# Lazy wrapper to avoid importing configuration at package import time (prevents circular imports)
def get_config(*args, **kwargs):
    from .configuration import get_config as _get_config
    return _get_config(*args, **kwargs)

__all__ = [
    "DocumentRegistry",
    "DocumentToken",
    "get_config",
]
