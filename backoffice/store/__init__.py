from .collection import CollectionStore, Document

__all__ = ["CollectionStore", "Document"]
