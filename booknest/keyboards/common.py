from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

from telegram import InlineKeyboardButton

NOOP_CALLBACK = "noop"


def filter_row(prefix: str, options: Iterable[Tuple[str, str]], selected: str) -> List[InlineKeyboardButton]:
    """Status filter buttons; picking one always goes back to page 1."""
    row = []
    for value, label in options:
        text = f"• {label}" if value == selected else label
        row.append(InlineKeyboardButton(text, callback_data=f"{prefix}_{value}_1"))
    return row


def pager_row(prefix: str, page, selected: Optional[str] = None) -> List[InlineKeyboardButton]:
    row = []
    stem = f"{prefix}_{selected}" if selected is not None else prefix
    if page.has_previous:
        row.append(InlineKeyboardButton("◀️", callback_data=f"{stem}_{page.page - 1}"))
    if page.total_pages > 1:
        row.append(InlineKeyboardButton(f"{page.page}/{page.total_pages}", callback_data=NOOP_CALLBACK))
    if page.has_next:
        row.append(InlineKeyboardButton("▶️", callback_data=f"{stem}_{page.page + 1}"))
    return row


def parse_list_callback(data: str, prefix: str) -> Tuple[str, int]:
    """``<prefix>_<FILTER>_<page>`` -> (FILTER, page)."""
    rest = data[len(prefix) + 1:]
    selected, _, raw_page = rest.rpartition("_")
    try:
        page = int(raw_page)
    except ValueError:
        page = 1
    return selected or "ALL", page
