from .base import Base, Column, String, Integer, DateTime, Boolean, Text, now


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(50), unique=True, nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    subscription_type = Column(String(20), default="free")  # free/pro/premium
    daily_article_limit = Column(Integer, default=5)
    monthly_article_limit = Column(Integer, default=50)
    avatar_url = Column(String(1000), nullable=True)
    profile_data = Column(Text, nullable=True)  # JSON
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=now)
    updated_at = Column(DateTime, default=now, onupdate=now)
