from .base import Base, Column, String, Integer, DateTime, Text, ForeignKey, now


class ArticleHistory(Base):
    __tablename__ = "user_article_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    # 删除记录需要在文章删除后保留，因此不设外键
    article_id = Column(Integer, index=True, nullable=False)
    action = Column(String(20), nullable=False)  # created/updated/deleted
    meta_json = Column("metadata", Text, nullable=True)
    created_at = Column(DateTime, default=now)
