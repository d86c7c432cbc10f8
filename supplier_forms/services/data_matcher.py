"""Matches form field labels against a user's master data."""
import logging
from typing import Dict, Iterable

from supplier_forms.domain.models import MatchResult
from supplier_forms.prompts import MATCH_FIELDS_PROMPT
from supplier_forms.services.inference import InferenceClient
from supplier_forms.services.schemas import FieldMatchResponse

logger = logging.getLogger(__name__)


def _bullet_list(lines: Iterable[str]) -> str:
    return "\n".join(f"- {line}" for line in lines) or "(none)"


class DataMatcher:
    """Service for fuzzy/semantic association of labels with master data.

    Matching never raises: if the text-generation call fails or its answer
    is unusable, every label maps to ``""`` and the user fills the gaps.
    """

    def __init__(self, inference: InferenceClient):
        self.inference = inference

    def match(self, field_labels: Iterable[str], master_data: Dict[str, str]) -> MatchResult:
        labels = list(dict.fromkeys(field_labels))
        matches: MatchResult = {label: "" for label in labels}
        if not labels or not master_data:
            return matches

        result = self.inference.generate(
            MATCH_FIELDS_PROMPT,
            {
                "form_fields": _bullet_list(labels),
                "master_data": _bullet_list(
                    f"Key: {key}, Value: {value}" for key, value in master_data.items()
                ),
            },
            FieldMatchResponse,
            expected_items=len(labels),
        )
        if not result.ok:
            logger.warning("Field matching failed, continuing with no matches: %s", result.detail)
            return matches

        for item in result.data.items:
            if item.form_field not in matches:
                logger.debug("Ignoring match for unknown field %r", item.form_field)
                continue
            value = (item.sheet_value or "").strip()
            if value and not matches[item.form_field]:
                matches[item.form_field] = value

        matched = sum(1 for value in matches.values() if value)
        logger.info("Matched %d of %d fields against master data", matched, len(labels))
        return matches
