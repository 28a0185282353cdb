from .base import Base, Column, String, Integer, DateTime, Text, now


class HotTopic(Base):
    __tablename__ = "hot_topics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(300), nullable=False)
    summary = Column(Text, nullable=True)
    category = Column(String(64), index=True)
    source = Column(String(64))
    hotness_score = Column(Integer, default=0, index=True)
    trend_data = Column(Text, nullable=True)  # JSON
    related_keywords = Column(Text, nullable=True)
    created_at = Column(DateTime, default=now)
    updated_at = Column(DateTime, default=now, onupdate=now)
