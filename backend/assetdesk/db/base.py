"""Declarative base shared by the job-tracking models."""

from sqlalchemy.orm import declarative_base

Base = declarative_base()
