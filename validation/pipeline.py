"""Runs validators in order and applies the first failure's remedy."""

import logging
import threading
from typing import List, Optional

from utils.text import truncate_for_log
from .base import ValidationInput, Validator
from .corrector import Corrector

logger = logging.getLogger(__name__)


class ValidationPipeline:
    """Ordered validator chain with single-pass correction.

    Corrected text is returned as-is and not validated again.
    """

    def __init__(self, validators: List[Validator], corrector: Corrector):
        self.validators = list(validators)
        self.corrector = corrector

    def validate(
        self,
        data: ValidationInput,
        cancel_event: Optional[threading.Event] = None,
        deadline: Optional[float] = None
    ) -> str:
        """
        Return the text to show the user.

        Args:
            data: Question, reply and request context
            cancel_event: Set when the caller goes away
            deadline: Request deadline for a corrective call

        Returns:
            The original reply when every validator passes, otherwise the
            corrected or regenerated text
        """
        logger.debug(f"Validating response: {truncate_for_log(data.response, 100)}")

        for validator in self.validators:
            result = validator.validate(data)
            if result.is_valid:
                logger.debug(f"[Pipeline] {validator.name}: PASS")
                continue

            logger.info(f"[Pipeline] {validator.name}: FAIL - {result.reason}")

            if result.corrected:
                return result.corrected

            return self.corrector.generate(
                data.question,
                data.book_id,
                data.language,
                cancel_event=cancel_event,
                deadline=deadline,
            )

        return data.response
