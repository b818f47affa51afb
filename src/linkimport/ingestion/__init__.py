"""Import pipeline: classification, fingerprinting, transfer, and tree walk."""

from .detectors import HashComputer, PathClassifier
from .errors import ImportRootError, IoFailure
from .models import (
    ClassifiedEntry,
    DedupKey,
    EntryKind,
    ImportNode,
    ImportOutcome,
    ImportResult,
    MediaType,
    NodeResult,
    TransferOutcome,
)
from .pipeline import TreeImporter
from .policies import (
    ContentHashPolicy,
    DedupPolicy,
    NameInParentPolicy,
    PathIdentityPolicy,
    policy_for,
)
from .transfer import LinkOrCopyTransferer, StorageLayout

__all__ = [
    "ClassifiedEntry",
    "ContentHashPolicy",
    "DedupKey",
    "DedupPolicy",
    "EntryKind",
    "HashComputer",
    "ImportNode",
    "ImportOutcome",
    "ImportResult",
    "ImportRootError",
    "IoFailure",
    "LinkOrCopyTransferer",
    "MediaType",
    "NameInParentPolicy",
    "NodeResult",
    "PathClassifier",
    "PathIdentityPolicy",
    "StorageLayout",
    "TransferOutcome",
    "TreeImporter",
    "policy_for",
]
