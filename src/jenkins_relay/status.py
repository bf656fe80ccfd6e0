from sanic.log import logger

from jenkins_relay.github import GitHub
from jenkins_relay.models import StatusState


class StatusReporter:
    def __init__(self, github: GitHub):
        self.github = github

    async def report(
        self,
        repo: str,
        context: str,
        sha: str,
        state: StatusState,
        description: str,
        target_url: str,
    ):
        await self.github.set_status(
            repo,
            sha,
            state=state,
            context=context,
            description=description,
            target_url=target_url,
        )
        logger.info(
            "Setting status on %s %s to %s for %s succeeded", repo, sha, state, context
        )
