import base64
from typing import Mapping
from urllib.parse import urlencode
import xml.etree.ElementTree as ET

import aiohttp
from sanic.log import logger

from jenkins_relay import metrics
from jenkins_relay.config import Config
from jenkins_relay.exceptions import (
    CancellationError,
    SchedulingError,
    UpstreamError,
)

BUILD_TREE = "builds[number,result,actions[parameters[name,value]]]"


def basic_auth_header(user: str, token: str) -> str:
    credentials = base64.b64encode(f"{user}:{token}".encode()).decode("ascii")
    return f"Basic {credentials}"


def encode_parameters(parameters: Mapping[str, str]) -> str:
    """Encode build parameters as ``KEY=value&KEY=value``."""
    return urlencode(parameters, safe="/:")


def active_build_xpath(pr_number: int, sha: str | None = None) -> str:
    selector = f'[action/parameter[name="PR"][value="{pr_number}"]]'
    if sha is not None:
        selector += f'[action/parameter[name="GIT_SHA1"][value="{sha}"]]'
    return f"/*/build{selector}[not(result)]"


def parse_instance_number(body: str) -> int | None:
    """Extract the first build number from a ``found_jobs`` wrapper document."""
    try:
        root = ET.fromstring(body)
    except ET.ParseError as e:
        raise UpstreamError(f"parsing jenkins job query response failed: {e}") from e

    number = root.findtext("build/number")
    if number is None:
        return None
    try:
        value = int(number.strip())
    except ValueError as e:
        raise UpstreamError(f"unexpected build number {number!r}") from e
    return value or None


class Jenkins:
    def __init__(self, session: aiohttp.ClientSession, config: Config):
        self.session = session
        self.config = config
        self.base_url = config.JENKINS_URL.rstrip("/")
        self._headers = {
            "Authorization": basic_auth_header(config.JENKINS_USER, config.JENKINS_TOKEN)
        }

    def get_job_url(self, job: str) -> str:
        return f"{self.base_url}/job/{job}"

    async def ping(self):
        url = f"{self.base_url}/api/json"
        try:
            async with self.session.get(url, headers=self._headers) as resp:
                status = resp.status
        except aiohttp.ClientError as e:
            raise UpstreamError(f"jenkins get to {url} failed: {e}") from e

        if status != 200:
            raise UpstreamError(
                f"jenkins get to {url} responded with status {status}",
                status_code=status,
            )

    async def schedule(self, job: str, parameters: Mapping[str, str]):
        url = f"{self.get_job_url(job)}/buildWithParameters?{encode_parameters(parameters)}"

        logger.debug("Scheduling jenkins build %s", url)
        if self.config.STERILE:
            logger.debug("Sterile mode: skipping build trigger")
            return

        with metrics.track_jenkins_api_call("build"):
            try:
                async with self.session.post(url, headers=self._headers, data=b"") as resp:
                    status = resp.status
            except aiohttp.ClientError as e:
                raise UpstreamError(f"jenkins post to {url} failed: {e}") from e

            if status != 201:
                raise SchedulingError(status, url)

        metrics.jenkins_builds_scheduled_total.labels(job).inc()
        logger.info("Scheduled jenkins build for %s", job)

    async def find_active_instance(
        self, job: str, pr_number: int, sha: str | None = None
    ) -> int | None:
        """
        Look up a queued or running build of ``job`` for a pull request.

        Args:
            job: Jenkins job name
            pr_number: value of the ``PR`` build parameter
            sha: additionally require ``GIT_SHA1`` to match. Nothing in the
                relay passes it; it is kept for callers that need to find the
                build of one commit, and its accepted statuses come from
                ``JENKINS_SHA_QUERY_OK_STATUSES``.

        Returns:
            The build number, or None when no unfinished build matches
        """
        url = f"{self.get_job_url(job)}/api/xml"
        params = {
            "tree": BUILD_TREE,
            "xpath": active_build_xpath(pr_number, sha),
            "wrapper": "found_jobs",
        }
        ok_statuses = (
            [200] if sha is None else self.config.JENKINS_SHA_QUERY_OK_STATUSES
        )

        with metrics.track_jenkins_api_call("query"):
            try:
                async with self.session.get(
                    url, params=params, headers=self._headers
                ) as resp:
                    status = resp.status
                    body = await resp.text()
            except aiohttp.ClientError as e:
                raise UpstreamError(f"jenkins get to {url} failed: {e}") from e

            if status not in ok_statuses:
                raise UpstreamError(
                    f"jenkins get to {url} responded with status {status}",
                    status_code=status,
                )

            return parse_instance_number(body)

    async def cancel(self, job: str, instance_id: int):
        url = f"{self.get_job_url(job)}/{instance_id}/stop"
        logger.info(
            "cancelling job instance, job: %s, job number: %d", job, instance_id
        )
        if self.config.STERILE:
            logger.debug("Sterile mode: skipping build cancellation")
            return

        with metrics.track_jenkins_api_call("stop"):
            try:
                async with self.session.post(url, headers=self._headers, data=b"") as resp:
                    status = resp.status
            except aiohttp.ClientError as e:
                raise UpstreamError(f"jenkins post to {url} failed: {e}") from e

            if status not in (200, 201):
                raise CancellationError(status, url)

        metrics.jenkins_builds_cancelled_total.labels(job).inc()

    async def cancel_active(self, job: str, pr_number: int) -> bool:
        """Stop the unfinished build of ``job`` for a pull request, if there is one."""
        instance_id = await self.find_active_instance(job, pr_number)
        if instance_id is None:
            logger.info("No job number found related to %s, %d", job, pr_number)
            return False

        await self.cancel(job, instance_id)
        return True
