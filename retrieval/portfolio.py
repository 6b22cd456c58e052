"""Owner portfolio loader."""

import json
import logging
from pathlib import Path
from typing import Optional

from schemas.portfolio import Portfolio

logger = logging.getLogger(__name__)


def load_portfolio(path: Optional[str] = None) -> Optional[Portfolio]:
    """
    Load the owner's portfolio JSON.

    Args:
        path: JSON file path (defaults to data/portfolio.json)

    Returns:
        Portfolio, or None when the file is missing or malformed
    """
    if path is None:
        path = Path(__file__).parent.parent / "data" / "portfolio.json"

    try:
        with open(path, "r", encoding="utf-8") as f:
            return Portfolio(**json.load(f))
    except FileNotFoundError:
        logger.warning(f"Portfolio file not found at {path}")
    except (json.JSONDecodeError, ValueError) as e:
        logger.error(f"Failed to parse portfolio JSON: {e}")
    return None
