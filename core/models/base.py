from datetime import datetime

from sqlalchemy import Column, String, Integer, DateTime, Boolean, Text, ForeignKey
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class ARTICLE_STATUS:
    DRAFT = "draft"
    PUBLISHED = "published"
    ALL = ("draft", "published")


class SYNC_STATUS:
    PENDING = "pending"
    SYNCED = "synced"
    FAILED = "failed"


class SYNC_LOG_STATUS:
    SUCCESS = "success"
    FAILED = "failed"


def now() -> datetime:
    return datetime.now()


__all__ = [
    "Base",
    "Column",
    "String",
    "Integer",
    "DateTime",
    "Boolean",
    "Text",
    "ForeignKey",
    "ARTICLE_STATUS",
    "SYNC_STATUS",
    "SYNC_LOG_STATUS",
    "now",
]
