"""Declarative base shared by all models"""
import uuid

from sqlalchemy.orm import declarative_base

Base = declarative_base()


def generate_id() -> str:
    """Opaque store-assigned document id"""
    return uuid.uuid4().hex
