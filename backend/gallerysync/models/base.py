"""Declarative base for all cache tables."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass
