from enum import Enum
from typing import Type

from sqlalchemy import Column, Enum as SAEnum


def enum_column(enum_cls: Type[Enum], name: str, default: Enum) -> Column:
    """Enum column stored by value ("active") rather than by member name ("ACTIVE")."""
    return Column(
        SAEnum(enum_cls, name=name, values_callable=lambda members: [m.value for m in members]),
        nullable=False,
        index=True,
        default=default,
    )
