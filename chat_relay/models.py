"""
SQLAlchemy ORM models for database tables.

This module contains database table definitions using SQLAlchemy.
For Pydantic request/response schemas, see schemas.py.
"""

from sqlalchemy import Column, Integer, String

from chat_relay.storage import Base


class Application(Base):
    """
    SQLAlchemy model for an application generated through a chat session.

    Table: apps
    Rows are created by the application builder; the relay only reads them
    and bumps number_of_messages after each message sent into chat_id.
    """
    __tablename__ = "apps"

    id = Column(String, primary_key=True, index=True)
    chat_id = Column(String, unique=True, nullable=True, index=True)
    name = Column(String, nullable=True)
    number_of_messages = Column(Integer, nullable=True, default=0)
    created_at = Column(String, nullable=True)  # ISO-8601 UTC string
    updated_at = Column(String, nullable=True)  # ISO-8601 UTC string
