"""Sheet-level access: schema + locale + pages -> one row stream.

A sheet ``Foo`` is described by ``exd/foo.exh`` and stored in one
``exd/foo_<start_id><locale suffix>.exd`` file per page.  Pages are
fetched from the repository lazily, one at a time, as iteration
reaches them.
"""

from __future__ import annotations

import csv
import io
import logging
from collections.abc import Iterator
from typing import TypeVar

from sqpack_reader.archive.repository import Repository
from sqpack_reader.config import settings
from sqpack_reader.constants import ROOT_EXL_PATH
from sqpack_reader.excel.mapper import map_rows
from sqpack_reader.excel.records import Row, read_rows
from sqpack_reader.excel.schema import Locale, Schema, parse_schema

logger = logging.getLogger(__name__)

T = TypeVar("T")


def read_schema(repo: Repository, name: str) -> Schema:
    return parse_schema(repo.read_plain(f"exd/{name.lower()}.exh"))


class Sheet:
    """Rows of one sheet in one locale, concatenated in page order.

    Iterating is restartable; each pass re-reads the page files.  A
    structural failure in a later page surfaces after the rows of the
    earlier pages have been yielded.
    """

    def __init__(
        self,
        repo: Repository,
        name: str,
        schema: Schema,
        locale: Locale,
        *,
        strict: bool | None = None,
    ) -> None:
        self.repo = repo
        self.name = name
        self.schema = schema
        self.locale = locale
        self.strict = strict

    def __repr__(self) -> str:
        return f"Sheet({self.name!r}, locale={self.locale.name}, pages={len(self.schema.pages)})"

    @property
    def page_paths(self) -> list[str]:
        return [self.schema.page_path(self.name, page, self.locale) for page in self.schema.pages]

    def rows(self) -> Iterator[Row]:
        for path in self.page_paths:
            logger.debug("Reading page %s", path)
            data = self.repo.read_plain(path)
            yield from read_rows(self.schema, data, strict=self.strict)

    def __iter__(self) -> Iterator[Row]:
        return self.rows()

    def collect(self) -> list[Row]:
        return list(self.rows())

    def map(self, target: type[T], *, include_row_id: bool = False) -> Iterator[T]:
        """Map rows onto *target*.

        With *include_row_id* on a sub-row sheet, the sub-row id follows
        the row id.
        """
        return map_rows(
            self.rows(),
            target,
            include_row_id=include_row_id,
            include_sub_row_id=include_row_id and self.schema.has_sub_rows,
        )


def read_sheet(
    repo: Repository,
    name: str,
    locale: Locale | str | None = None,
    *,
    strict: bool | None = None,
) -> Sheet:
    """Open sheet *name* for *locale* (defaults to ``settings.default_locale``).

    If the sheet does not ship the requested locale, its first
    available locale is used, then the locale-agnostic pages.
    """
    if locale is None:
        locale = settings.default_locale
    if isinstance(locale, str):
        locale = Locale.from_code(locale)

    schema = read_schema(repo, name)
    resolved = schema.resolve_locale(locale)
    if resolved is not locale:
        logger.info("Sheet %s has no %s pages, using %s", name, locale.name, resolved.name)
    return Sheet(repo, name, schema, resolved, strict=strict)


def list_sheets(repo: Repository) -> list[str]:
    """Return the sheet names listed in ``exd/root.exl``."""
    text = repo.read_plain(ROOT_EXL_PATH).decode("utf-8-sig")
    names: list[str] = []
    for record in csv.reader(io.StringIO(text)):
        if not record or not record[0] or record[0] == "EXLT":
            continue
        names.append(record[0])
    return names
