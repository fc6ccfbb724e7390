# Filename: bantconfirm/services/csv_export.py
# Spreadsheet-compatible CSV rendering for admin reports.

import csv
import io
from datetime import datetime
from typing import Iterable, Optional, Sequence


def short_date(value: Optional[datetime]) -> str:
    """US short date (M/D/YYYY), the format spreadsheet users expect from the dashboard."""
    if value is None:
        return ""
    return f"{value.month}/{value.day}/{value.year}"


def render_csv(headers: Sequence[str], rows: Iterable[Sequence]) -> str:
    """
    Rows joined with '\\n' and no trailing newline.

    Fields containing a comma, a double quote or a line break are wrapped in
    quotes and embedded quotes are doubled; everything else is written bare.
    """
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n", quoting=csv.QUOTE_MINIMAL)
    writer.writerow(headers)
    for row in rows:
        writer.writerow(["" if v is None else v for v in row])
    out = buf.getvalue()
    return out[:-1] if out.endswith("\n") else out
