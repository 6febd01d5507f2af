from newsletter_feeds.models.source import FeedSource
from newsletter_feeds.models.article import Article, ArticleSource

__all__ = ["FeedSource", "Article", "ArticleSource"]
