#   Copyright 2026 UCP Authors
#
#   Licensed under the Apache License, Version 2.0 (the "License");
#   you may not use this file except in compliance with the License.
#   You may obtain a copy of the License at
#
#       http://www.apache.org/licenses/LICENSE-2.0
#
#   Unless required by applicable law or agreed to in writing, software
#   distributed under the License is distributed on an "AS IS" BASIS,
#   WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#   See the License for the specific language governing permissions and
#   limitations under the License.

"""Validation of buyer personalization answers against listing fields."""

from typing import Dict, List, Optional, Sequence

import db
from exceptions import PersonalizationInvalidError


def validate(
    fields: Sequence[db.PersonalizationField],
    answers: Optional[Dict[str, str]],
) -> List[Dict[str, str]]:
  """Returns one error entry per field that the answers do not satisfy."""
  errors = []
  answers = answers or {}
  for field in fields:
    value = (answers.get(field.id) or "").strip()
    if not value:
      if field.is_required:
        errors.append({
            "field_id": field.id,
            "field_label": field.label,
            "error": f"{field.label} is required",
        })
      continue
    if field.min_length is not None and len(value) < field.min_length:
      errors.append({
          "field_id": field.id,
          "field_label": field.label,
          "error": (
              f"{field.label} must be at least {field.min_length} characters"
          ),
      })
    if field.max_length is not None and len(value) > field.max_length:
      errors.append({
          "field_id": field.id,
          "field_label": field.label,
          "error": (
              f"{field.label} must be at most {field.max_length} characters"
          ),
      })
  return errors


def assert_valid(
    fields: Sequence[db.PersonalizationField],
    answers: Optional[Dict[str, str]],
) -> None:
  errors = validate(fields, answers)
  if errors:
    raise PersonalizationInvalidError(
        "Personalization validation failed", details=errors
    )


def sanitize(
    fields: Sequence[db.PersonalizationField],
    answers: Optional[Dict[str, str]],
) -> Dict[str, str]:
  """Trims answers and drops unknown fields and empty values."""
  if not answers:
    return {}
  known = {f.id for f in fields}
  sanitized = {}
  for key, value in answers.items():
    if key not in known or value is None:
      continue
    trimmed = value.strip()
    if trimmed:
      sanitized[key] = trimmed
  return sanitized
