from datetime import date, datetime, time, timezone
from typing import List, Optional

from .schemas import (
    Document,
    DocumentSourceFilter,
    Message,
    MessageDirection,
    ReadStatus,
)


def _aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def newest_first(items: list, attr: str) -> list:
    return sorted(items, key=lambda x: _aware(getattr(x, attr)), reverse=True)


def filter_messages(
    messages: List[Message],
    search: str = "",
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    direction: MessageDirection = MessageDirection.ALL,
    read_status: ReadStatus = ReadStatus.ALL,
) -> List[Message]:
    term = (search or "").strip().lower()
    start = datetime.combine(start_date, time.min, tzinfo=timezone.utc) if start_date else None
    # end date is inclusive through 23:59:59
    end = datetime.combine(end_date, time(23, 59, 59), tzinfo=timezone.utc) if end_date else None

    out = []
    for m in messages:
        if term and not (
            term in (m.subject or "").lower()
            or term in (m.body_text or "").lower()
            or term in m.sender_account.lower()
        ):
            continue
        when = _aware(m.registered_at)
        if start and when < start:
            continue
        if end and when > end:
            continue
        if direction == MessageDirection.FROM_CONTACT and not m.is_from_contact:
            continue
        if direction == MessageDirection.FROM_ME and m.is_from_contact:
            continue
        if read_status == ReadStatus.READ and not m.is_read:
            continue
        if read_status == ReadStatus.UNREAD and m.is_read:
            continue
        out.append(m)
    return out


def filter_documents(
    documents: List[Document],
    search: str = "",
    source: DocumentSourceFilter = DocumentSourceFilter.ALL,
) -> List[Document]:
    term = (search or "").strip().lower()
    out = []
    for d in documents:
        if source != DocumentSourceFilter.ALL and d.source.value != source.value:
            continue
        if term and not (
            term in (d.original_file_name or "").lower()
            or term in d.safe_file_name.lower()
            or term in d.file_type.lower()
        ):
            continue
        out.append(d)
    return out


def format_file_size(size: int) -> str:
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    return f"{round(value, 2):g} {units[i]}"


def truncate_summary(content: str, max_lines: int = 2, max_chars: int = 150) -> str:
    lines = [line for line in content.split("\n") if line.strip()]
    if len(lines) > max_lines:
        return "\n".join(lines[:max_lines]) + "..."
    if len(content) > max_chars:
        return content[:max_chars] + "..."
    return content
