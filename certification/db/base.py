"""Declarative base for certification database models."""

from sqlalchemy.orm import declarative_base

Base = declarative_base()
