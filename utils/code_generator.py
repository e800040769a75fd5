# utils/code_generator.py
import re
from sqlalchemy.orm import Session


def is_autogen(raw: str | None) -> bool:
    """Blank, AUTO or AUTOGEN means "let the system pick the code"."""
    return (raw or "").strip().upper() in ("", "AUTO", "AUTOGEN")


def next_code(db: Session, model, field: str, prefix: str, width: int, *filters) -> str:
    """
    Running sequence PREFIX#### e.g. LOC0001, B0001.
    Extra SQLAlchemy filters narrow the scope (bins are numbered per location).
    """
    col = getattr(model, field)
    pat = re.compile(rf"^{re.escape(prefix)}(\d+)$")
    max_n = 0
    q = db.query(col).filter(col.like(f"{prefix}%"), *filters)
    for (code,) in q.all():
        m = pat.match(code or "")
        if m:
            n = int(m.group(1))
            if n > max_n:
                max_n = n
    return f"{prefix}{str(max_n + 1).zfill(width)}"
