"""
Column resolution: map arbitrary roster headers onto the fields a card needs.

Each logical field has ONE ordered priority table. Rules are tried in order;
an exact rule matches the trimmed header case-insensitively, a substring
rule matches when every substring occurs in the lower-cased header.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from data_loaders import RosterRecord, RosterTable
from errors import MissingRequiredColumn


@dataclass(frozen=True)
class ColumnRule:
    exact: Optional[str] = None
    subs: Tuple[str, ...] = ()

    def matches(self, header: str) -> bool:
        h = header.strip().lower()
        if self.exact is not None:
            return h == self.exact.lower()
        return bool(self.subs) and all(s in h for s in self.subs)


def _exact(*names: str) -> Tuple[ColumnRule, ...]:
    return tuple(ColumnRule(exact=n) for n in names)


PHOTO_KEY = "photo_filename"
PERSON_ID = "person_id"
FIRST_NAME = "first_name"
LAST_NAME = "last_name"
FULL_NAME = "full_name"
TITLE = "title"
DEPARTMENT = "department"
EMAIL = "email"

PRIORITY_TABLE: Dict[str, Tuple[ColumnRule, ...]] = {
    PHOTO_KEY: _exact(
        "photo_filename", "photo filename", "photo_file", "photofilename",
        "photo", "image_filename", "image", "picture", "filename", "file_name",
    ) + (
        ColumnRule(subs=("photo", "file")),
        ColumnRule(subs=("photo", "name")),
        ColumnRule(subs=("image", "file")),
    ),
    PERSON_ID: _exact(
        "employee_id", "employee id", "id", "staff_id", "staff id",
        "member_id", "member id", "badge_id", "student_id",
    ) + (
        ColumnRule(subs=("employee", "id")),
        ColumnRule(subs=("member", "id")),
    ),
    FIRST_NAME: _exact("first_name", "firstname", "first name", "given_name", "given name", "forename") + (
        ColumnRule(subs=("first", "name")),
    ),
    LAST_NAME: _exact("last_name", "lastname", "last name", "surname", "family_name", "family name") + (
        ColumnRule(subs=("last", "name")),
    ),
    FULL_NAME: _exact("full_name", "full name", "fullname", "name", "employee_name", "display_name") + (
        ColumnRule(subs=("full", "name")),
    ),
    TITLE: _exact("title", "role", "job_title", "job title", "position", "designation") + (
        ColumnRule(subs=("job", "title")),
    ),
    DEPARTMENT: _exact("department", "dept", "division", "team", "site") + (
        ColumnRule(subs=("depart",)),
    ),
    EMAIL: _exact("email", "e-mail", "email_address", "work_email") + (
        ColumnRule(subs=("mail",)),
    ),
}


def find_column(headers: Sequence[str], rules: Sequence[ColumnRule]) -> Optional[str]:
    """First header matched by the highest-priority rule, or None."""
    for rule in rules:
        for h in headers:
            if rule.matches(h):
                return h
    return None


@dataclass(frozen=True)
class ColumnMapping:
    """Which header (if any) feeds each logical field. Resolved once per roster."""

    photo_key: str
    person_id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    full_name: Optional[str] = None
    title: Optional[str] = None
    department: Optional[str] = None
    email: Optional[str] = None


@dataclass(frozen=True)
class ResolvedPerson:
    person_id: str
    photo_filename: str
    photo_key: str
    display_name: str
    first_name: str = ""
    last_name: str = ""
    title: Optional[str] = None
    department: Optional[str] = None
    email: Optional[str] = None
    row_number: int = 0


def resolve_photo_column(headers: Sequence[str], required: bool = True) -> str:
    """
    Photo-filename column: priority table, then (only when not required)
    the first column. Raises MissingRequiredColumn otherwise.
    """
    col = find_column(headers, PRIORITY_TABLE[PHOTO_KEY])
    if col is not None:
        return col
    if required or not headers:
        raise MissingRequiredColumn(PHOTO_KEY, headers)
    return headers[0]


def resolve_columns(headers: Sequence[str], required: bool = True) -> ColumnMapping:
    photo_col = resolve_photo_column(headers, required=required)
    # The photo column is never reused for another field (e.g. "name" rules vs "photo_name").
    others = [h for h in headers if h != photo_col]

    def pick(field_name: str, pool: List[str]) -> Optional[str]:
        col = find_column(pool, PRIORITY_TABLE[field_name])
        if col is not None:
            pool.remove(col)
        return col

    pool = list(others)
    first = pick(FIRST_NAME, pool)
    last = pick(LAST_NAME, pool)
    return ColumnMapping(
        photo_key=photo_col,
        person_id=pick(PERSON_ID, pool),
        first_name=first,
        last_name=last,
        full_name=pick(FULL_NAME, pool),
        title=pick(TITLE, pool),
        department=pick(DEPARTMENT, pool),
        email=pick(EMAIL, pool),
    )


def _value(record: RosterRecord, col: Optional[str]) -> str:
    if not col:
        return ""
    return (record.get(col) or "").strip()


def build_display_name(first: str, last: str, full: str) -> str:
    """First + last when either exists, else the combined name field, else ''."""
    if first or last:
        return " ".join(p for p in (first, last) if p)
    return " ".join(full.split())


def resolve_person(record: RosterRecord, mapping: ColumnMapping) -> ResolvedPerson:
    first = _value(record, mapping.first_name)
    last = _value(record, mapping.last_name)
    photo = _value(record, mapping.photo_key)
    pid = _value(record, mapping.person_id) or f"row-{record.row_number}"
    return ResolvedPerson(
        person_id=pid,
        photo_filename=photo,
        photo_key=photo.lower(),
        display_name=build_display_name(first, last, _value(record, mapping.full_name)),
        first_name=first,
        last_name=last,
        title=_value(record, mapping.title) or None,
        department=_value(record, mapping.department) or None,
        email=_value(record, mapping.email) or None,
        row_number=record.row_number,
    )


def resolve_roster(table: RosterTable, required: bool = True) -> List[ResolvedPerson]:
    """Resolve headers once, then every record. Raises before touching any asset."""
    mapping = resolve_columns(table.headers, required=required)
    return [resolve_person(r, mapping) for r in table.records]
