from sanic.log import logger

from jenkins_relay.config import Config
from jenkins_relay.github import GitHub
from jenkins_relay.github.models import PullRequestContent
from jenkins_relay.models import StatusState
from jenkins_relay.status import StatusReporter

UNAPPROVED_USER = "Unapproved user"


def comment_marker(comment_type: str) -> str:
    return f"<!-- jenkins-relay: {comment_type} -->"


def pulls_url(repo: str) -> str:
    return f"https://github.com/{repo}/pulls/"


class AuthorizationGate:
    def __init__(self, github: GitHub, reporter: StatusReporter, config: Config):
        self.github = github
        self.reporter = reporter
        self.config = config

    async def is_authorized(self, login: str) -> bool:
        if not self.config.ALLOW_TEAMS:
            logger.warning("ALLOW_TEAMS is not configured, every author is authorized")
            return True

        for team in self.config.ALLOW_TEAMS:
            if await self.github.is_team_member(self.config.GITHUB_ORG, team, login):
                logger.debug(
                    "%s is a member of %s/%s", login, self.config.GITHUB_ORG, team
                )
                return True

        return False

    async def add_unique_comment(
        self, content: PullRequestContent, body: str, comment_type: str
    ) -> bool:
        """Post ``body`` unless the bot already left a comment of this type."""
        marker = comment_marker(comment_type)
        if content.already_commented(marker, self.config.GITHUB_USER):
            logger.debug(
                "Already commented about '%s' on PR #%d",
                comment_type,
                content.pull_request.number,
            )
            return False

        pr = content.pull_request
        await self.github.add_comment(pr.base_repo, pr.number, f"{body}\n\n{marker}")
        return True

    async def reject_and_notify(self, content: PullRequestContent):
        pr = content.pull_request
        author = pr.user.login
        logger.error("Aborting! PR author %s is not an approved user!", author)

        comment = (
            f"Thanks for your submission, {author}. "
            "Tests can only be initiated by an authorized team member. "
            "Please contact us for assistance."
        )
        await self.add_unique_comment(content, comment, UNAPPROVED_USER)

        await self.reporter.report(
            pr.base_repo,
            self.config.UNAUTHORIZED_CONTEXT,
            pr.head.sha,
            StatusState.failure,
            "Please contact the team to run tests",
            pulls_url(pr.base_repo),
        )
        logger.debug("Successfully set PR status as failed for %s", pr.base_repo)

    async def mark_authorized(self, repo: str, sha: str):
        await self.reporter.report(
            repo,
            self.config.UNAUTHORIZED_CONTEXT,
            sha,
            StatusState.success,
            "This PR is now Authorized!",
            pulls_url(repo),
        )
