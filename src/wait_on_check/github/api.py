from contextlib import asynccontextmanager
import logging
from typing import AsyncIterator, List, Optional, Protocol

import aiohttp
import cachetools
import gidgethub
from gidgethub import aiohttp as gh_aiohttp
from gidgethub.abc import GitHubAPI
import pydantic

from wait_on_check.errors import ConfigurationError, TransportError
from wait_on_check.github.model import CheckRun
from wait_on_check.metric import record_api_call

logger = logging.getLogger("wait_on_check")

DEFAULT_API_ENDPOINT = "https://api.github.com"

# polling hits the same url over and over, etag hits don't count against the rate limit
httpcache = cachetools.LRUCache(maxsize=500)


class CheckRunFetcher(Protocol):
    async def get_check_runs_for_ref(self, ref: str) -> List[CheckRun]: ...


class API:
    gh: GitHubAPI
    repo: str

    call_count: int

    def __init__(self, gh: GitHubAPI, repo: str):
        if repo.count("/") != 1:
            raise ConfigurationError(
                f"Repository must be given as owner/name, got '{repo}'"
            )
        self.gh = gh
        self.repo = repo
        self.call_count = 0

    async def get_check_runs_for_ref(self, ref: str) -> List[CheckRun]:
        self.call_count += 1
        owner, name = self.repo.split("/")
        url = "/repos/{owner}/{name}/commits/{ref}/check-runs"
        url_vars = {"owner": owner, "name": name, "ref": ref}
        logger.debug("Get check runs for ref %s on %s", ref, self.repo)
        record_api_call(endpoint="check-runs")
        try:
            return [
                CheckRun.model_validate(item)
                async for item in self.gh.getiter(
                    url, url_vars, iterable_key="check_runs"
                )
            ]
        except gidgethub.GitHubException as e:
            raise TransportError(
                f"GitHub API request for check runs on {self.repo}@{ref} failed: {e}",
                url=url,
            ) from e
        except aiohttp.ClientError as e:
            raise TransportError(
                f"Could not reach the GitHub API: {e}",
                url=url,
            ) from e
        except pydantic.ValidationError as e:
            raise TransportError(
                f"Unexpected check run payload from the GitHub API: {e}",
                url=url,
            ) from e


@asynccontextmanager
async def github_client(
    token: Optional[str], api_endpoint: Optional[str] = None
) -> AsyncIterator[GitHubAPI]:
    base_url = DEFAULT_API_ENDPOINT
    if api_endpoint is not None and api_endpoint.strip() != "":
        base_url = api_endpoint.strip().rstrip("/")
    logger.debug("Using GitHub API endpoint %s", base_url)

    async with aiohttp.ClientSession() as session:
        yield gh_aiohttp.GitHubAPI(
            session,
            "wait_on_check",
            oauth_token=token,
            cache=httpcache,
            base_url=base_url,
        )
