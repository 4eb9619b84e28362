"""Schedule page - extracts the GXP id mappings embedded in ClassSchedule.mvc.

The class-list endpoint (ClassSchedule.mvc/get_gxp_classes) only answers when
the request echoes back the instructor, area and branch mappings the page was
rendered with. They are not exposed anywhere else; the page embeds them in an
inline script as a JavaScript object literal that happens to be valid JSON:

  <script>
    var gxpSchedule = {"all_mapped_instructor": [...],
                       "all_mapped_areas": [...],
                       "all_mapped_branches": [{"gxp_location_id": 6469, ...}],
                       "gxp_account_id": 1020, ...};
  </script>

The variable name has changed between portal releases, so the extractor keys on
the mapping field names instead.
"""

import json
import re

from pydantic import ValidationError

from src.jcc_mashup.logging import get_logger
from src.jcc_mashup.models import ScheduleMappings

log = get_logger(__name__)

MARKER_KEY = "all_mapped_instructor"

_SCRIPT_BLOCK = re.compile(r"<script\b[^>]*>(.*?)</script>", re.IGNORECASE | re.DOTALL)
# Start of an object literal on the right-hand side of an assignment or call
_OBJECT_START = re.compile(r"(?:=|\(|:)\s*(\{)")

_decoder = json.JSONDecoder()


def extract_schedule_mappings(html: str | None) -> ScheduleMappings | None:
    """Locate and parse the embedded mapping object on the schedule page.

    Args:
        html: ClassSchedule.mvc page markup.

    Returns:
        Parsed ScheduleMappings, or None if no script block holds a usable object.
    """
    if not html:
        return None

    for script in _SCRIPT_BLOCK.findall(html):
        if MARKER_KEY not in script:
            continue
        for candidate in _object_literals(script):
            try:
                mappings = ScheduleMappings.model_validate(candidate)
            except ValidationError as e:
                log.debug("schedule_mappings_rejected", errors=e.error_count())
                continue
            log.debug(
                "schedule_mappings_extracted",
                instructors=len(mappings.all_mapped_instructor),
                areas=len(mappings.all_mapped_areas),
                branches=len(mappings.all_mapped_branches),
                gxp_account_id=mappings.gxp_account_id,
            )
            return mappings

    log.warning("schedule_mappings_not_found", length=len(html))
    return None


def _object_literals(script: str):
    """Yield every JSON object that starts after '=', '(' or ':' in a script."""
    for match in _OBJECT_START.finditer(script):
        try:
            value, _ = _decoder.raw_decode(script, match.start(1))
        except ValueError:
            continue
        if isinstance(value, dict):
            if MARKER_KEY in value:
                yield value
            else:
                # Mappings nested one level down, e.g. init({"config": {...}})
                for nested in value.values():
                    if isinstance(nested, dict) and MARKER_KEY in nested:
                        yield nested
