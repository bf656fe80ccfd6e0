from http import HTTPStatus

from gidgethub.routing import Router
from gidgethub.sansio import Event
from sanic.log import logger

from jenkins_relay.engine import OrchestrationEngine
from jenkins_relay.github.models import PullRequestEvent, PullRequestReviewEvent

router = Router()


@router.register("pull_request")
async def on_pr(event: Event, engine: OrchestrationEngine) -> HTTPStatus:
    logger.debug("Got a pull request hook")
    data = PullRequestEvent.model_validate(event.data)
    return await engine.on_pull_request_event(data)


@router.register("pull_request_review")
async def on_pr_review(event: Event, engine: OrchestrationEngine) -> HTTPStatus:
    logger.debug("Got a pull_request_review hook")
    data = PullRequestReviewEvent.model_validate(event.data)
    return await engine.on_review_rerun_request(data)


@router.register("ping")
async def on_ping(event: Event, engine: OrchestrationEngine) -> HTTPStatus:
    logger.debug("Received ping event")
    return HTTPStatus.OK


async def dispatch(event: Event, engine: OrchestrationEngine) -> HTTPStatus:
    """Run the callbacks registered for ``event`` and return the last status."""
    callbacks = router.fetch(event)
    if not callbacks:
        logger.error("Got unknown GitHub notification event type: %s", event.event)
        return HTTPStatus.OK

    status = HTTPStatus.OK
    for callback in callbacks:
        status = await callback(event, engine=engine)
    return status
