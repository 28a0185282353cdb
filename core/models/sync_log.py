from .base import Base, Column, String, Integer, DateTime, Text, ForeignKey, now


class SyncLog(Base):
    __tablename__ = "wechat_sync_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    article_id = Column(Integer, ForeignKey("articles.id", ondelete="CASCADE"), index=True, nullable=False)
    sync_status = Column(String(20), nullable=False)  # success/failed
    wechat_article_id = Column(String(255), nullable=True)
    wechat_response = Column(Text, nullable=True)  # JSON
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, default=now, index=True)
