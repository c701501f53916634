from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase, MappedAsDataclass

# Stable constraint names, so schema repair can look constraints up by name on any backend.
NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(MappedAsDataclass, DeclarativeBase, kw_only=True):
    """
    Declarative base of the page tree and path index models.
    Mapped classes are dataclasses with keyword-only constructors.
    """

    metadata = MetaData(naming_convention=NAMING_CONVENTION)
