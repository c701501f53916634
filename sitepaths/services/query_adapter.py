"""
Path conditions for generic SELECT statements.

``apply_path_condition`` joins ``page_paths`` onto any statement that has a
page id column and filters on the joined path. Each call gets its own table
aliases, so one statement can carry several path conditions.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from sqlalchemy import Select, and_, func, not_, or_
from sqlalchemy.orm import aliased
from sqlalchemy.sql.elements import ColumnElement

from sitepaths.core.config import Settings
from sitepaths.core.exceptions import QueryUsageError
from sitepaths.core.locale import DEFAULT_LOCALE_ID, LocaleLike, as_locale
from sitepaths.models import PathEntry
from sitepaths.services.sanitizer import sanitize

logger = logging.getLogger(__name__)

COMPARISON_OPERATORS = ("=", "!=", ">", "<", ">=", "<=")
# "%=" and "*=" match a substring, "~=" matches every word in any order.
FULLTEXT_OPERATORS = ("%=", "*=", "~=")
OPERATORS = COMPARISON_OPERATORS + FULLTEXT_OPERATORS

_SELECTOR_RE = re.compile(r"^\s*(?P<negate>!)?\s*path\s*(?P<operator>!=|>=|<=|%=|\*=|~=|=|>|<)\s*(?P<value>.*)$")


@dataclass(frozen=True)
class PathCondition:
    operator: str
    values: Sequence[str] = field(default_factory=tuple)
    negate: bool = False

    def __post_init__(self):
        if isinstance(self.values, str):
            object.__setattr__(self, "values", (self.values,))
        else:
            object.__setattr__(self, "values", tuple(self.values))

    @property
    def is_fulltext(self) -> bool:
        return self.operator in FULLTEXT_OPERATORS

    def validate(self) -> None:
        if self.operator not in OPERATORS:
            raise QueryUsageError(f"Unsupported path operator '{self.operator}'.")
        if not self.values:
            raise QueryUsageError("A path condition needs at least one value.")
        if self.is_fulltext and len(self.values) > 1:
            raise QueryUsageError(f"Operator '{self.operator}' does not support multiple values.")
        if self.is_fulltext and self.negate:
            raise QueryUsageError(f"Operator '{self.operator}' cannot be negated.")

    @classmethod
    def parse(cls, selector: str) -> "PathCondition":
        """
        Parses a selector such as ``path=company/team|about`` or ``!path>=m``.
        A leading ``!`` negates the condition and ``|`` separates OR'd values.
        """
        match = _SELECTOR_RE.match(selector or "")
        if not match:
            raise QueryUsageError(f"Not a path selector: '{selector}'.")
        values = tuple(value for value in match.group("value").split("|"))
        return cls(operator=match.group("operator"), values=values, negate=bool(match.group("negate")))


def apply_path_condition(
    stmt: Select,
    page_id_column: ColumnElement,
    condition: PathCondition,
    locale: LocaleLike = None,
    app_settings: Optional[Settings] = None,
) -> Select:
    """
    Adds joins against the path index and the condition's WHERE clause.

    Each page is compared by one effective path: its row for ``locale`` when it
    has one, its default path otherwise. Negation is therefore the exact
    complement of the plain condition within the indexed pages.

    Args:
        stmt: Statement to extend.
        page_id_column: Column of ``stmt`` holding the page id to match.
        condition: The path condition.
        locale: Locale whose paths are compared; None for the default locale.
        app_settings: Settings used to sanitize the values. Defaults to the
            module-level settings.

    Raises:
        QueryUsageError: For unknown operators, or when a full-text operator
            is combined with several values or with negation.
    """
    condition.validate()
    locale = as_locale(locale)
    lowercase = app_settings.LOWERCASE_PATHS if app_settings is not None else None

    # Anonymous aliases are numbered per statement when compiled (page_paths_1, page_paths_2, ...).
    default_path = aliased(PathEntry)
    stmt = stmt.join(
        default_path,
        and_(default_path.page_id == page_id_column, default_path.locale_id == DEFAULT_LOCALE_ID),
    )
    path_column = default_path.path
    if not locale.is_default:
        locale_path = aliased(PathEntry)
        stmt = stmt.outerjoin(
            locale_path,
            and_(locale_path.page_id == page_id_column, locale_path.locale_id == locale.id),
        )
        path_column = func.coalesce(locale_path.path, default_path.path)

    clause = _path_clause(path_column, condition, lowercase)
    logger.debug(f"Joined path index for condition {condition.operator} {list(condition.values)} (locale {locale.id}).")
    return stmt.where(clause)


def _path_clause(column, condition: PathCondition, lowercase: Optional[bool] = None) -> ColumnElement:
    values = [sanitize(value, lowercase=lowercase) for value in condition.values]

    if condition.is_fulltext:
        value = values[0]
        if condition.operator == "~=":
            words = [word for word in re.split(r"[\s/]+", value) if word]
            if not words:
                raise QueryUsageError(f"Operator '{condition.operator}' needs at least one word.")
            return and_(*[column.contains(word, autoescape=True) for word in words])
        return column.contains(value, autoescape=True)

    comparisons: List[ColumnElement] = [_compare(column, condition.operator, value) for value in values]
    clause = comparisons[0] if len(comparisons) == 1 else or_(*comparisons)
    return not_(clause) if condition.negate else clause


def _compare(column, operator: str, value: str) -> ColumnElement:
    if operator == "=":
        return column == value
    if operator == "!=":
        return column != value
    if operator == ">":
        return column > value
    if operator == "<":
        return column < value
    if operator == ">=":
        return column >= value
    return column <= value
