import contextlib
from typing import Any

import aiohttp
import gidgethub
from gidgethub.abc import GitHubAPI
from sanic.log import logger

from jenkins_relay import metrics
from jenkins_relay.config import Config
from jenkins_relay.exceptions import UpstreamError
from jenkins_relay.github.models import (
    Comment,
    CommentCreateRequest,
    Commit,
    CommitStatus,
    PullRequest,
    PullRequestContent,
    PullRequestFile,
    StatusCreateRequest,
)
from jenkins_relay.models import StatusState

PER_PAGE = 100


@contextlib.asynccontextmanager
async def upstream(action: str):
    """Turn gidgethub, transport and parsing failures into :class:`UpstreamError`."""
    try:
        yield
    except gidgethub.HTTPException as e:
        raise UpstreamError(
            f"{action} failed: {e.status_code} {e}", status_code=e.status_code
        ) from e
    except (gidgethub.GitHubException, aiohttp.ClientError, ValueError) as e:
        # pydantic's ValidationError is a ValueError
        raise UpstreamError(f"{action} failed: {e}") from e


class GitHub:
    def __init__(self, gh: GitHubAPI, config: Config):
        self.gh = gh
        self.config = config

    async def get_pull_request(self, repo: str, number: int) -> PullRequest:
        async with upstream(f"getting pull request {number} for {repo}"):
            data = await self.gh.getitem(f"/repos/{repo}/pulls/{number}")
            return PullRequest.model_validate(data)

    async def _list(self, url: str, action: str, model):
        async with upstream(action):
            return [
                model.model_validate(item)
                async for item in self.gh.getiter(f"{url}?per_page={PER_PAGE}")
            ]

    async def list_commits(self, repo: str, number: int) -> list[Commit]:
        return await self._list(
            f"/repos/{repo}/pulls/{number}/commits",
            f"listing commits of {repo}#{number}",
            Commit,
        )

    async def list_files(self, repo: str, number: int) -> list[PullRequestFile]:
        return await self._list(
            f"/repos/{repo}/pulls/{number}/files",
            f"listing files of {repo}#{number}",
            PullRequestFile,
        )

    async def list_comments(self, repo: str, number: int) -> list[Comment]:
        return await self._list(
            f"/repos/{repo}/issues/{number}/comments",
            f"listing comments of {repo}#{number}",
            Comment,
        )

    async def load_pull_request(self, repo: str, number: int) -> PullRequestContent:
        pull_request = await self.get_pull_request(repo, number)
        return PullRequestContent(
            pull_request=pull_request,
            commits=await self.list_commits(repo, number),
            files=await self.list_files(repo, number),
            comments=await self.list_comments(repo, number),
        )

    async def list_pull_requests(
        self, repo: str, state: str = "open", per_page: int = PER_PAGE
    ) -> list[PullRequest]:
        async with upstream(f"requesting {state} pull requests for {repo}"):
            data: list[dict[str, Any]] = await self.gh.getitem(
                f"/repos/{repo}/pulls?state={state}&per_page={per_page}"
            )
            return [PullRequest.model_validate(item) for item in data]

    async def list_statuses(self, repo: str, sha: str) -> list[CommitStatus]:
        async with upstream(f"getting status for {sha} for {repo}"):
            data: list[dict[str, Any]] = await self.gh.getitem(
                f"/repos/{repo}/commits/{sha}/statuses?per_page={PER_PAGE}"
            )
            return [CommitStatus.model_validate(item) for item in data]

    async def has_status(self, repo: str, sha: str, context: str) -> bool:
        statuses = await self.list_statuses(repo, sha)
        return any(status.context == context for status in statuses)

    async def set_status(
        self,
        repo: str,
        sha: str,
        state: StatusState,
        context: str,
        description: str,
        target_url: str,
    ):
        payload = StatusCreateRequest(
            state=state,
            context=context,
            description=description,
            target_url=target_url,
        )

        logger.debug(
            "Posting status %s for sha %s to GitHub: %s",
            state,
            sha,
            f"/repos/{repo}/statuses/{sha}",
        )
        if self.config.STERILE:
            logger.debug("Sterile mode: skipping status update")
            return

        async with upstream(f"setting status for repo: {repo}, sha: {sha}"):
            await self.gh.post(
                f"/repos/{repo}/statuses/{sha}", data=payload.model_dump(mode="json")
            )
        metrics.github_status_updates_total.labels(repo, str(state)).inc()

    async def add_comment(self, repo: str, number: int, body: str):
        logger.debug("Adding comment to %s#%d", repo, number)
        if self.config.STERILE:
            logger.debug("Sterile mode: skipping comment")
            return

        async with upstream(f"adding comment to {repo}#{number}"):
            await self.gh.post(
                f"/repos/{repo}/issues/{number}/comments",
                data=CommentCreateRequest(body=body).model_dump(),
            )

    async def is_team_member(self, org: str, team: str, user: str) -> bool:
        try:
            await self.gh.getitem(f"/orgs/{org}/teams/{team}/memberships/{user}")
            return True
        except gidgethub.HTTPException as e:
            logger.debug(
                "Membership query for %s in %s/%s answered %s",
                user,
                org,
                team,
                e.status_code,
            )
            return False
        except (gidgethub.GitHubException, aiohttp.ClientError) as e:
            raise UpstreamError(
                f"checking membership of {user} in {org}/{team} failed: {e}"
            ) from e
