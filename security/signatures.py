"""Signature library loader.

The real pattern sets are a deployment secret: production points
``signatures_path`` at a private YAML file. The repository ships a small
generic baseline in ``data/signatures.yaml``.
"""

import re
import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class SignatureSet(BaseModel):
    """Raw signature lists as stored in YAML."""
    injection_patterns: list[str] = Field(default_factory=list)
    instruction_patterns: list[str] = Field(default_factory=list)
    leak_patterns: list[str] = Field(default_factory=list)
    leak_keywords: list[str] = Field(default_factory=list)
    echo_phrases: list[str] = Field(default_factory=list)

    def compiled(self, field: str) -> list[re.Pattern]:
        """Compile one of the pattern lists, case-insensitively."""
        compiled = []
        for pattern in getattr(self, field):
            try:
                compiled.append(re.compile(pattern, re.IGNORECASE))
            except re.error as e:
                raise ValueError(f"Invalid {field} pattern {pattern!r}: {e}") from e
        return compiled


def load_signatures(path: Optional[str] = None) -> SignatureSet:
    """
    Load the signature library from YAML.

    Args:
        path: YAML file path (defaults to data/signatures.yaml)

    Returns:
        SignatureSet; empty when the file does not exist
    """
    if path is None:
        path = Path(__file__).parent.parent / "data" / "signatures.yaml"

    path = Path(path)
    if not path.exists():
        logger.warning(f"Signature file not found at {path}, detection disabled")
        return SignatureSet()

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    signatures = SignatureSet(**raw)
    logger.info(
        f"Loaded signatures from {path}: "
        f"{len(signatures.injection_patterns)} injection, "
        f"{len(signatures.instruction_patterns)} instruction, "
        f"{len(signatures.leak_patterns)} leak"
    )
    return signatures
