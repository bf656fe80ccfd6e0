import contextlib
import functools
import hmac

import aiohttp
import cachetools
import gidgethub
import pydantic
from aiolimiter import AsyncLimiter
from gidgethub import aiohttp as gh_aiohttp
from gidgethub.sansio import Event as GitHubEvent
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sanic import Sanic, response
from sanic.log import logger

from jenkins_relay import metrics
from jenkins_relay.config import Config
from jenkins_relay.engine import OrchestrationEngine
from jenkins_relay.exceptions import RelayError
from jenkins_relay.github import GitHub
from jenkins_relay.github import router as github_router
from jenkins_relay.jenkins import Jenkins
from jenkins_relay.jenkins.models import JenkinsNotification
from jenkins_relay.models import CustomBuildRequest


def with_session(func):
    @functools.wraps(func)
    async def wrapper(
        *args, app: Sanic, session: aiohttp.ClientSession | None = None, **kwargs
    ):
        async with contextlib.AsyncExitStack() as stack:
            if session is None:
                session = getattr(app.ctx, "aiohttp_session", None)
            if session is None:
                session = await stack.enter_async_context(aiohttp.ClientSession())
            return await func(*args, app=app, session=session, **kwargs)

    return wrapper


def make_engine(app: Sanic, session: aiohttp.ClientSession) -> OrchestrationEngine:
    config: Config = app.ctx.config
    gh = gh_aiohttp.GitHubAPI(
        session,
        config.GITHUB_USER,
        oauth_token=config.GITHUB_TOKEN,
        cache=app.ctx.cache,
    )
    return OrchestrationEngine(
        catalog=app.ctx.catalog,
        github=GitHub(gh, config),
        jenkins=Jenkins(session, config),
        config=config,
    )


def is_operator(request, config: Config) -> bool:
    credentials = request.credentials
    if credentials is None or credentials.auth_type != "Basic":
        return False
    user = credentials.username or ""
    password = credentials.password or ""
    return hmac.compare_digest(user, config.OPERATOR_USER) and hmac.compare_digest(
        password, config.OPERATOR_PASS
    )


@with_session
async def handle_github_webhook(request, *, app: Sanic, session: aiohttp.ClientSession):
    config: Config = app.ctx.config
    try:
        event = GitHubEvent.from_http(
            request.headers, request.body, secret=config.WEBHOOK_SECRET
        )
    except gidgethub.ValidationFailure as e:
        logger.error("Rejecting GitHub notification: %s", e)
        return response.empty(401)
    except gidgethub.BadRequest as e:
        logger.error("Error parsing hook: %s", e)
        return response.empty(400)

    engine = make_engine(app, session)

    logger.debug("Dispatching event %s", event.event)
    try:
        with metrics.track_webhook_processing("github", event.event):
            status = await github_router.dispatch(event, engine=engine)
    except pydantic.ValidationError as e:
        logger.error("Error parsing %s hook: %s", event.event, e)
        return response.empty(400)
    except RelayError as e:
        logger.error("Handling %s hook failed: %s", event.event, e)
        return response.empty(500)

    return response.empty(status)


@with_session
async def handle_jenkins_notification(
    request, *, app: Sanic, session: aiohttp.ClientSession
):
    try:
        notification = JenkinsNotification.model_validate_json(request.body)
    except pydantic.ValidationError as e:
        logger.error("decoding the jenkins request as json failed: %s", e)
        return response.empty(400)

    engine = make_engine(app, session)
    try:
        with metrics.track_webhook_processing("jenkins", notification.build.phase):
            status = await engine.on_ci_status_notification(notification)
    except RelayError as e:
        logger.error("Handling jenkins notification failed: %s", e)
        return response.empty(500)

    return response.empty(status)


@with_session
async def handle_operator_build(
    request, kind: str, *, app: Sanic, session: aiohttp.ClientSession
):
    if not is_operator(request, app.ctx.config):
        return response.empty(401)

    try:
        build_request = CustomBuildRequest.model_validate_json(request.body)
    except pydantic.ValidationError as e:
        logger.error("decoding the %s build request as json failed: %s", kind, e)
        return response.empty(400)

    engine = make_engine(app, session)
    handler = engine.on_custom_build if kind == "custom" else engine.on_cron_build
    try:
        with metrics.track_webhook_processing("operator", kind):
            status = await handler(build_request)
    except RelayError as e:
        logger.error("%s build failed: %s", kind, e)
        return response.empty(500)

    return response.empty(status)


def create_app(config: Config | None = None) -> Sanic:
    if config is None:
        config = Config()  # type: ignore[call-arg]

    app = Sanic("jenkins-relay")
    app.ctx.config = config
    app.ctx.catalog = config.build_catalog()
    logger.setLevel(config.OVERRIDE_LOGGING)

    app.ctx.cache = cachetools.LRUCache(maxsize=500)

    metrics.app_info.info({"builds": str(len(app.ctx.catalog))})

    limiter = AsyncLimiter(10)

    @app.listener("before_server_start")
    async def init(app, loop):
        config.print_config()
        logger.debug("Creating aiohttp session")
        app.ctx.aiohttp_session = aiohttp.ClientSession()

    @app.listener("after_server_stop")
    async def close(app, loop):
        logger.debug("Closing aiohttp session")
        await app.ctx.aiohttp_session.close()

    @app.route("/")
    async def index(request):
        logger.debug("status check")
        return response.text("pong")

    @app.route("/ping")
    async def ping(request):
        return response.text("pong")

    @app.route("/health")
    async def health(request):
        if not limiter.has_capacity():
            return response.text("Rate limited", status=429)
        await limiter.acquire()

        session = app.ctx.aiohttp_session
        github_ok = False
        jenkins_ok = False

        logger.info("Checking health")
        try:
            gh = gh_aiohttp.GitHubAPI(
                session, config.GITHUB_USER, oauth_token=config.GITHUB_TOKEN
            )
            await gh.getitem("/rate_limit")
            logger.info("GitHub ok")
            github_ok = True
        except Exception as e:
            logger.error("GitHub rate limit query failed: %s", e)
            logger.exception(e)

        try:
            await Jenkins(session, config).ping()
            logger.info("Jenkins ok")
            jenkins_ok = True
        except Exception as e:
            logger.error("Jenkins info failed: %s", e)
            logger.exception(e)

        status = 200 if github_ok and jenkins_ok else 500
        github_str = "ok" if github_ok else "not ok"
        jenkins_str = "ok" if jenkins_ok else "not ok"
        text = f"GitHub: {github_str}, Jenkins: {jenkins_str}"
        return response.text(text, status=status)

    @app.route("/metrics")
    async def prometheus_metrics(request):
        return response.raw(generate_latest(), content_type=CONTENT_TYPE_LATEST)

    @app.route("/notification/github", methods=["POST"])
    async def github(request):
        logger.debug("Webhook received on github endpoint")
        return await handle_github_webhook(request, app=app)

    @app.route("/notification/jenkins", methods=["POST"])
    async def jenkins(request):
        logger.debug("Notification received on jenkins endpoint")
        return await handle_jenkins_notification(request, app=app)

    @app.route("/build/custom", methods=["POST"])
    async def custom_build(request):
        return await handle_operator_build(request, "custom", app=app)

    @app.route("/build/cron", methods=["POST"])
    async def cron_build(request):
        return await handle_operator_build(request, "cron", app=app)

    return app
