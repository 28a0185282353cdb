from .base import (
    Base, Column, String, Integer, DateTime, Text, ForeignKey, now,
    ARTICLE_STATUS, SYNC_STATUS,
)


class Article(Base):
    __tablename__ = "articles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    hot_topic_id = Column(Integer, ForeignKey("hot_topics.id", ondelete="SET NULL"), nullable=True)
    title = Column(String(300), nullable=False)
    content = Column(Text)
    cover_image_url = Column(String(1000), nullable=True)
    article_type = Column(String(32), default="educational")
    style = Column(String(32), default="professional")
    structure = Column(String(32), default="standard")
    word_count = Column(Integer, default=0)
    status = Column(String(20), default=ARTICLE_STATUS.DRAFT, index=True)
    tags = Column(Text, nullable=True)
    # 生成元数据
    ai_prompt = Column(Text, nullable=True)
    ai_model = Column(String(64), nullable=True)
    generation_time_seconds = Column(Integer, nullable=True)
    additional_requirements = Column(Text, nullable=True)  # JSON
    # 微信同步
    wechat_sync_status = Column(String(20), default=SYNC_STATUS.PENDING)
    wechat_article_id = Column(String(255), nullable=True)
    wechat_sync_time = Column(DateTime, nullable=True)
    published_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=now, index=True)
    updated_at = Column(DateTime, default=now, onupdate=now)
