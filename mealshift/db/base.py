"""Shared SQLAlchemy base declarative class and model imports."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for ORM models."""


# Import model modules so metadata is populated before create_all.
from mealshift.models import audit_log as _audit_log  # noqa: E402,F401
from mealshift.models import blacklist as _blacklist  # noqa: E402,F401
from mealshift.models import canteen as _canteen  # noqa: E402,F401
from mealshift.models import holiday as _holiday  # noqa: E402,F401
from mealshift.models import order as _order  # noqa: E402,F401
from mealshift.models import ordering_setting as _ordering_setting  # noqa: E402,F401
from mealshift.models import shift as _shift  # noqa: E402,F401
from mealshift.models import user as _user  # noqa: E402,F401
