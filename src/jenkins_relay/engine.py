from http import HTTPStatus

from sanic.log import logger

from jenkins_relay.authorization import AuthorizationGate
from jenkins_relay.catalog import BuildCatalog, BuildDefinition
from jenkins_relay.commits import CommitResolver
from jenkins_relay.config import Config
from jenkins_relay.exceptions import NotFoundInCatalog, RelayError, UpstreamError
from jenkins_relay.github import GitHub
from jenkins_relay.github.models import (
    PullRequestContent,
    PullRequestEvent,
    PullRequestReviewEvent,
)
from jenkins_relay.jenkins import Jenkins
from jenkins_relay.jenkins.models import (
    Build,
    BuildParameters,
    BuildRequestParameters,
    JenkinsNotification,
    Phase,
)
from jenkins_relay.models import CustomBuildRequest, StatusState
from jenkins_relay.retry import RetryPolicy
from jenkins_relay.status import StatusReporter

PULL_REQUEST_ACTIONS = ("opened", "reopened", "synchronize")

RERUN_COMMAND = "rerun ci"

SCHEDULED_DESCRIPTION = "Jenkins build is being scheduled"

# COMPLETED build status => (commit state, description suffix)
COMPLETED_STATES = {
    "SUCCESS": (StatusState.success, "has succeeded"),
    "FAILURE": (StatusState.failure, "has failed"),
    "UNSTABLE": (StatusState.failure, "was unstable"),
    "ABORTED": (StatusState.error, "has encountered an error"),
}


def build_state(name: str, build: Build) -> tuple[StatusState, str] | None:
    """
    Map a Jenkins phase/status pair to a commit state and description.

    Returns None for phases that are not reported and for unknown statuses.
    """
    description = f"Jenkins build {name} {build.number}"
    if build.phase == Phase.STARTED:
        return StatusState.pending, f"{description} is running"

    if build.phase != Phase.COMPLETED:
        return None

    if build.status not in COMPLETED_STATES:
        logger.error("Did not understand %r build status. Aborting.", build.status)
        return None

    state, suffix = COMPLETED_STATES[build.status]
    return state, f"{description} {suffix}"


def is_not_found(e: Exception) -> bool:
    return isinstance(e, UpstreamError) and e.status_code == 404


def pull_request_url(repo: str, number: int) -> str:
    return f"https://github.com/{repo}/pull/{number}"


class OrchestrationEngine:
    def __init__(
        self,
        catalog: BuildCatalog,
        github: GitHub,
        jenkins: Jenkins,
        config: Config,
        pr_load_policy: RetryPolicy | None = None,
    ):
        self.catalog = catalog
        self.github = github
        self.jenkins = jenkins
        self.config = config

        self.reporter = StatusReporter(github)
        self.resolver = CommitResolver(github, config.BUILD_COMMITS)
        self.gate = AuthorizationGate(github, self.reporter, config)
        self.pr_load_policy = pr_load_policy or RetryPolicy(
            max_retries=config.PR_LOAD_MAX_RETRIES,
            base_delay=config.PR_LOAD_BASE_DELAY,
            multiplier=config.PR_LOAD_BACKOFF_MULTIPLIER,
        )

    async def on_pull_request_event(self, event: PullRequestEvent) -> HTTPStatus:
        pr = event.pull_request
        repo = pr.base_repo

        logger.info(
            "Received GitHub pull request notification for %s %d (%s): %s",
            repo,
            pr.number,
            pr.html_url,
            event.action,
        )

        if event.action not in PULL_REQUEST_ACTIONS:
            logger.debug("Ignoring PR hook action %r", event.action)
            return HTTPStatus.OK

        content = await self.load_pull_request(repo, event.number)

        if content.pull_request.mergeable is not True:
            logger.error("Unmergeable PR for %s #%d. Aborting build", repo, pr.number)
            return HTTPStatus.OK

        if not await self.gate.is_authorized(pr.user.login):
            await self.gate.reject_and_notify(content)
            # a stale build from an earlier push must not keep running
            await self.cancel_builds(repo, event.number)
            return HTTPStatus.OK

        await self.start_builds(repo, event.number)
        return HTTPStatus.OK

    async def load_pull_request(self, repo: str, number: int) -> PullRequestContent:
        # GitHub may answer 404 for a pull request that was opened a moment ago
        return await self.pr_load_policy.run(
            lambda: self.github.load_pull_request(repo, number),
            should_retry=is_not_found,
            description=f"loading pull request {repo}#{number}",
        )

    async def cancel_builds(self, repo: str, number: int) -> list[BuildDefinition]:
        builds = self.catalog.find_by_repo(repo, custom=False)

        for build in builds:
            await self.jenkins.cancel_active(build.job, number)

        return builds

    async def start_builds(self, repo: str, number: int):
        """Cancel every running build of the pull request, then schedule fresh ones."""
        builds = await self.cancel_builds(repo, number)

        for build in builds:
            if build.downstream:
                continue
            await self.schedule_build(repo, number, build)

    async def schedule_build(self, repo: str, number: int, build: BuildDefinition):
        shas, pr = await self.resolver.resolve(repo, number, build.context)

        for sha in shas:
            await self.reporter.report(
                repo,
                build.context,
                sha,
                StatusState.pending,
                SCHEDULED_DESCRIPTION,
                self.jenkins.get_job_url(build.job),
            )

            parameters = BuildRequestParameters(
                base_repo=repo,
                head_repo=pr.head_repo,
                sha=sha,
                github_url=pull_request_url(repo, pr.number),
                pr=pr.number,
                base_branch=pr.base.ref,
            )
            await self.jenkins.schedule(build.job, parameters.to_parameters())

    async def schedule_downstream_build(
        self, build: BuildDefinition, parameters: BuildParameters
    ):
        await self.reporter.report(
            build.repo,
            build.context,
            parameters.sha,
            StatusState.pending,
            SCHEDULED_DESCRIPTION,
            self.jenkins.get_job_url(build.job),
        )

        request = BuildRequestParameters(
            base_repo=build.repo,
            head_repo=parameters.head_repo,
            sha=parameters.sha,
            github_url=pull_request_url(build.repo, parameters.pr_number),
            pr=parameters.pr_number,
            base_branch=parameters.base_branch,
        )
        await self.jenkins.schedule(build.job, request.to_parameters())

    async def on_ci_status_notification(
        self, notification: JenkinsNotification
    ) -> HTTPStatus:
        build = notification.build
        logger.info(
            "Received Jenkins notification for %s %d (%s): %s",
            notification.name,
            build.number,
            build.full_url,
            build.phase,
        )

        mapped = build_state(notification.name, build)
        if mapped is None:
            return HTTPStatus.OK
        state, description = mapped

        try:
            definition = self.catalog.find_by_job(notification.name)
        except NotFoundInCatalog as e:
            logger.error("%s", e)
            return HTTPStatus.OK

        target_url = build.full_url
        if state == StatusState.pending:
            target_url += "console"

        parameters = build.parameters
        await self.reporter.report(
            parameters.base_repo,
            definition.context,
            parameters.sha,
            state,
            description,
            target_url,
        )

        if state == StatusState.success:
            await self.trigger_downstream(definition, parameters)

        return HTTPStatus.OK

    async def trigger_downstream(
        self, definition: BuildDefinition, parameters: BuildParameters
    ):
        for context in definition.downstream_builds:
            try:
                downstream = self.catalog.find_by_context_and_repo(
                    context, parameters.base_repo
                )
            except NotFoundInCatalog as e:
                logger.error("%s", e)
                return

            if parameters.base_branch in downstream.exclude_targets:
                logger.info(
                    "Skipping build due to excluded target: %s", parameters.base_branch
                )
                continue

            await self.schedule_downstream_build(downstream, parameters)

    async def on_review_rerun_request(
        self, event: PullRequestReviewEvent
    ) -> HTTPStatus:
        if event.action != "submitted":
            logger.debug("Ignoring pull_request_review action=%s", event.action)
            return HTTPStatus.OK

        body = (event.review.body or "").strip()
        if body.casefold() != RERUN_COMMAND:
            logger.debug("Review comment did not match [%s], ignoring", RERUN_COMMAND)
            return HTTPStatus.OK

        reviewer = event.review.user.login
        logger.debug("PR was reviewed by: %s", reviewer)

        if not await self.gate.is_authorized(reviewer):
            logger.warning("User %s tried to rerun CI but is not authorized", reviewer)
            return HTTPStatus.FORBIDDEN

        repo = event.repository.full_name
        number = event.pull_request.number

        # the head may have moved since the author was rejected
        pr = await self.github.get_pull_request(repo, number)
        logger.info("PR head sha=%s, repo=%s", pr.head.sha, repo)
        await self.gate.mark_authorized(repo, pr.head.sha)

        await self.start_builds(repo, number)
        return HTTPStatus.OK

    async def on_custom_build(self, request: CustomBuildRequest) -> HTTPStatus:
        build = self.catalog.find_by_context_and_repo(request.context, request.repo)
        await self.schedule_build(request.repo, request.number, build)
        return HTTPStatus.NO_CONTENT

    async def failed_pull_requests(self, context: str, repo: str) -> list[int]:
        """Open pull requests whose head has no status for ``context`` and was not rejected."""
        numbers = []
        for pr in await self.github.list_pull_requests(repo, state="open"):
            sha = pr.head.sha
            if await self.github.has_status(repo, sha, context):
                continue
            if await self.github.has_status(
                repo, sha, self.config.UNAUTHORIZED_CONTEXT
            ):
                continue
            numbers.append(pr.number)

        logger.debug("Failed PR numbers = %s", numbers)
        return numbers

    async def on_cron_build(self, request: CustomBuildRequest) -> HTTPStatus:
        build = self.catalog.find_by_context_and_repo(request.context, request.repo)

        for number in await self.failed_pull_requests(build.context, request.repo):
            try:
                await self.schedule_build(request.repo, number, build)
            except RelayError as e:
                # one broken pull request must not hold back the others
                logger.error("Scheduling %s for PR #%d failed: %s", build.job, number, e)

        return HTTPStatus.NO_CONTENT
