from .models import IndustryCodeModel

from .manager import DatabaseManager
from .vector_store import VectorStore, CodePage, pack_vector, unpack_vector

__all__ = [
    "IndustryCodeModel",
    "DatabaseManager",
    "VectorStore",
    "CodePage",
    "pack_vector",
    "unpack_vector",
]
