"""Derivation, merging, and reconciliation of collections against the models tree."""

from .derivation import STRATEGIES, DerivationEngine, DerivationResult
from .identity import collection_id, collection_id_for_relative, decode_collection_id, make_manual_id
from .merge import MergeReconciler, MergeSummary, is_auto_collection
from .mutations import CollectionDraft, add_models_transform, delete_transform, upsert_transform
from .visibility import HiddenFlagReconciler, ReconcileReport

__all__ = [
    "STRATEGIES",
    "CollectionDraft",
    "DerivationEngine",
    "DerivationResult",
    "HiddenFlagReconciler",
    "MergeReconciler",
    "MergeSummary",
    "ReconcileReport",
    "add_models_transform",
    "collection_id",
    "collection_id_for_relative",
    "decode_collection_id",
    "delete_transform",
    "is_auto_collection",
    "make_manual_id",
    "upsert_transform",
]
