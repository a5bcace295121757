"""reviewkit resource clients."""

from reviewkit.clients.checks import ChecksClient
from reviewkit.clients.comments import CommentsClient
from reviewkit.clients.pulls import PullsClient
from reviewkit.clients.repos import ReposClient
from reviewkit.clients.reviews import ReviewsClient
from reviewkit.clients.threads import ThreadsClient
from reviewkit.clients.users import UsersClient

__all__ = [
    "ChecksClient",
    "CommentsClient",
    "PullsClient",
    "ReposClient",
    "ReviewsClient",
    "ThreadsClient",
    "UsersClient",
]
