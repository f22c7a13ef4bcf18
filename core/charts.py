from __future__ import annotations

from typing import Any, Dict

import altair as alt

alt.data_transformers.disable_max_rows()

STATUS_COLORS = {
    "CRITICAL": "#EF4444",
    "WARNING": "#F59E0B",
    "GOOD": "#22D3EE",
    "EXEMPT": "#737373",
}

TARGET_COLOR = "#404040"
REALIZED_COLOR = "#22D3EE"
BEHIND_COLOR = "#EF4444"
TREND_COLOR = "#F59E0B"


def to_vega_spec(chart: alt.TopLevelMixin) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()
