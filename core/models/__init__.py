# 导入用户模型
from .user import User
# 导入热点模型
from .hot_topic import HotTopic
# 导入文章模型
from .article import Article
from .article_history import ArticleHistory
# 生成与同步日志
from .generation_log import GenerationLog
from .sync_log import SyncLog
# 导入基础模型
from .base import Base, ARTICLE_STATUS, SYNC_STATUS, SYNC_LOG_STATUS
