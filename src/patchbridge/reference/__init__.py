"""Reference dataset layer.

Stores fetch the authoritative entry for a channel; the validator compares
decoded records against it.
"""

from patchbridge.reference.credentials import ServiceAccountTokenProvider, TokenProvider
from patchbridge.reference.firestore import FirestoreReferenceStore
from patchbridge.reference.store import InMemoryReferenceStore, JsonReferenceStore, ReferenceStore
from patchbridge.reference.validator import ReferenceValidator, compare_to_reference

__all__ = [
    "FirestoreReferenceStore",
    "InMemoryReferenceStore",
    "JsonReferenceStore",
    "ReferenceStore",
    "ReferenceValidator",
    "ServiceAccountTokenProvider",
    "TokenProvider",
    "compare_to_reference",
]
