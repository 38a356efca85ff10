from wait_on_check.github.api import API, CheckRunFetcher, github_client
from wait_on_check.github.model import CheckConclusion, CheckRun, CheckStatus

__all__ = [
    "API",
    "CheckConclusion",
    "CheckRun",
    "CheckRunFetcher",
    "CheckStatus",
    "github_client",
]
