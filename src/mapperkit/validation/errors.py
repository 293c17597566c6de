"""
Validation error hierarchy for MapperKit.
"""

from __future__ import annotations

from typing import Dict, List, Mapping

NON_FIELD_ERRORS = "__all__"


class ValidationError(Exception):
    """
    Aggregated validation error storing a field-to-messages mapping.
    """

    def __init__(self, errors: Mapping[str, List[str]] | str) -> None:
        if isinstance(errors, str):
            errors = {NON_FIELD_ERRORS: [errors]}
        self.errors: Dict[str, List[str]] = {
            key: list(messages) for key, messages in errors.items()
        }
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        segments = []
        for field_name, messages in self.errors.items():
            prefix = field_name if field_name != NON_FIELD_ERRORS else "non-field"
            segments.append(f"{prefix}: {'; '.join(messages)}")
        return "; ".join(segments)
