"""Input and external-content defenses."""

from .normalizer import fold, normalize
from .injection_gate import InjectionGate
from .sanitizer import Sanitizer
from .signatures import SignatureSet, load_signatures

__all__ = [
    "fold",
    "normalize",
    "InjectionGate",
    "Sanitizer",
    "SignatureSet",
    "load_signatures",
]
