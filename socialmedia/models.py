"""
SQLAlchemy ORM models for database tables.

This module contains database table definitions using SQLAlchemy.
For the Pydantic entities passed between layers, see schemas.py.
"""

from sqlalchemy import BigInteger, Column, ForeignKey, Integer, String

from socialmedia.storage import Base


class AccountRecord(Base):
    """
    Registered account.

    Table: account
    Unique: username (backstop for the service-level uniqueness check)
    """
    __tablename__ = "account"

    account_id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(255), nullable=False, unique=True, index=True)
    password = Column(String(255), nullable=False)  # plain text, not hashed


class MessageRecord(Base):
    """
    Short text message posted by an account.

    Table: message
    Foreign Key: posted_by -> account.account_id
    """
    __tablename__ = "message"

    message_id = Column(Integer, primary_key=True, autoincrement=True)
    posted_by = Column(
        Integer,
        ForeignKey("account.account_id"),
        nullable=False,
        index=True,
    )
    message_text = Column(String(255), nullable=False)
    time_posted_epoch = Column(BigInteger, nullable=False)
