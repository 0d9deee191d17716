from __future__ import annotations

import io
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from llm_prepare.aggregator import WalkResult


def build_document(result: WalkResult, *, suppress_layout: bool = False) -> str:
    """Build the single text stream of a traversal.

    The layout tree comes first, followed by a blank line, then every unit
    (header line and content) in traversal order, separated by blank lines.

    Args:
        result (WalkResult): what the walk gathered
        suppress_layout (bool): omit the layout block

    Returns:
        str: the assembled stream, "" when there is nothing to write
    """
    out = io.StringIO()
    if not suppress_layout and result.layout:
        out.write(result.layout)
        out.write("\n\n")
    out.write("\n".join(unit.text for unit in result.units))
    text = out.getvalue().rstrip()
    return text + "\n" if text else ""
