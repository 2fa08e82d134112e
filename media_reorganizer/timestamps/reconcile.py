from datetime import datetime
from typing import Optional, Tuple

from ..models import ParsedDate


class TimestampReconciler:
    """
    Decides whether an embedded capture timestamp or the filename date wins.

    - No embedded timestamp: use the parsed date (not authoritative).
    - Embedded year == parsed year: keep the embedded timestamp, including
      its time of day (authoritative).
    - Years disagree (epoch or factory-default camera clocks): the
      filename/path date wins.
    """

    def reconcile(self,
                  embedded: Optional[datetime],
                  parsed: ParsedDate) -> Tuple[datetime, bool]:
        if embedded is None:
            return parsed.to_datetime(), False

        if embedded.year == parsed.year:
            return embedded, True

        return parsed.to_datetime(), False
