"""
Locale handling.

A locale is either the default locale or a named alternate identified by its
database id. Stored rows still use the integer id (0 for the default); this
module is the only place that knows about that convention.
"""

from dataclasses import dataclass
from typing import Dict, Mapping, Optional, TypeVar, Union

DEFAULT_LOCALE_ID = 0

V = TypeVar("V")


@dataclass(frozen=True)
class DefaultLocale:
    @property
    def id(self) -> int:
        return DEFAULT_LOCALE_ID

    @property
    def is_default(self) -> bool:
        return True


@dataclass(frozen=True)
class NamedLocale:
    locale_id: int

    def __post_init__(self):
        if self.locale_id <= DEFAULT_LOCALE_ID:
            raise ValueError(f"Named locales need a positive id, got {self.locale_id}.")

    @property
    def id(self) -> int:
        return self.locale_id

    @property
    def is_default(self) -> bool:
        return False


Locale = Union[DefaultLocale, NamedLocale]
LocaleLike = Union[Locale, int, None]

DEFAULT_LOCALE = DefaultLocale()


def as_locale(value: LocaleLike) -> Locale:
    """Coerce an id, None or a Locale into a Locale."""
    if value is None:
        return DEFAULT_LOCALE
    if isinstance(value, (DefaultLocale, NamedLocale)):
        return value
    if int(value) == DEFAULT_LOCALE_ID:
        return DEFAULT_LOCALE
    return NamedLocale(int(value))


def resolve(values: Mapping[int, V], locale: LocaleLike) -> Optional[V]:
    """
    Value for ``locale`` from a mapping keyed by locale id, falling back to the
    default locale's value when the locale has none of its own.
    """
    locale = as_locale(locale)
    if not locale.is_default:
        value = values.get(locale.id)
        if value:
            return value
    return values.get(DEFAULT_LOCALE_ID)


def alternate_ids(values: Mapping[int, V]) -> Dict[int, V]:
    """Entries of a locale-keyed mapping that belong to alternate locales."""
    return {locale_id: value for locale_id, value in values.items() if locale_id != DEFAULT_LOCALE_ID}
