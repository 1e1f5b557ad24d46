import re


def safe_component(value: str) -> str:
    """Word characters/spaces/-, any whitespace run collapsed to one underscore."""
    raw = "" if value is None else str(value)
    spaced = re.sub(r"\s+", " ", raw)
    safe = re.sub(r"[^\w -]+", "", spaced).strip()
    return re.sub(r" +", "_", safe)


def single_card_filename(person_id: str, display_name: str) -> str:
    """
    Archive entry name for one person's card PDF: '<id>_<name>.pdf'.
    - Whitespace runs in the name become a single underscore
    - Path separators and other unsafe characters are dropped
    - Falls back to 'card.pdf'
    """
    parts = [p for p in (safe_component(person_id), safe_component(display_name)) if p]
    stem = "_".join(parts) or "card"
    return f"{stem}.pdf"


def unique_name(name: str, taken: set) -> str:
    """'x.pdf' -> 'x_2.pdf', 'x_3.pdf', ... until unused; records the result in taken."""
    if name not in taken:
        taken.add(name)
        return name
    stem, dot, ext = name.rpartition(".")
    if not dot:
        stem, ext = name, ""
    n = 2
    while True:
        candidate = f"{stem}_{n}.{ext}" if dot else f"{stem}_{n}"
        if candidate not in taken:
            taken.add(candidate)
            return candidate
        n += 1
