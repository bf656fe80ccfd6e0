from typing import Awaitable, Callable, Sequence

from sanic.log import logger

from jenkins_relay.github import GitHub
from jenkins_relay.github.models import Commit, PullRequest
from jenkins_relay.models import CommitSelectionPolicy

StatusLookup = Callable[[str, str], Awaitable[bool]]


async def resolve_commits(
    policy: CommitSelectionPolicy,
    pull_request: PullRequest,
    commits: Sequence[Commit],
    has_status: StatusLookup,
    context: str,
) -> list[str]:
    """Pick the shas of a pull request that should be built under ``context``."""
    if policy == CommitSelectionPolicy.last:
        return [pull_request.head.sha]

    shas = []
    for commit in commits:
        if policy == CommitSelectionPolicy.new and await has_status(
            commit.sha, context
        ):
            logger.debug("Commit %s already has a %s status", commit.sha, context)
            continue
        shas.append(commit.sha)
    return shas


class CommitResolver:
    def __init__(self, github: GitHub, policy: CommitSelectionPolicy):
        self.github = github
        self.policy = policy

    async def resolve(
        self, repo: str, number: int, context: str
    ) -> tuple[list[str], PullRequest]:
        pull_request = await self.github.get_pull_request(repo, number)

        commits: list[Commit] = []
        if self.policy != CommitSelectionPolicy.last:
            commits = await self.github.list_commits(repo, number)

        async def has_status(sha: str, context: str) -> bool:
            return await self.github.has_status(repo, sha, context)

        shas = await resolve_commits(
            self.policy, pull_request, commits, has_status, context
        )
        logger.debug(
            "Resolved %d commit(s) of %s#%d under policy %s",
            len(shas),
            repo,
            number,
            self.policy,
        )
        return shas, pull_request
