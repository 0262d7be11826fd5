try:
    from ._version import version as __version__  # populated by setuptools-scm
except ModuleNotFoundError:
    __version__ = "0.0.0"

from .graph import GraphService
from .hybrid import HybridQueryService
from .store import RelationalStore

__all__ = ["__version__", "GraphService", "HybridQueryService", "RelationalStore"]
