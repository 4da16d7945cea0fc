"""HTTP transport for EdiPlug commands"""
import logging
from typing import Optional

import httpx

from ediplug.commands import Command
from ediplug.errors import TransportError
from sources.base import PlugAddress

logger = logging.getLogger(__name__)

PORT = 10000
PATH = "/smartplug.cgi"
USERNAME = "admin"
DEFAULT_TIMEOUT = 5.0


def control_url(host: str) -> str:
    """Control endpoint of the plug at host"""
    return f"http://{host}:{PORT}{PATH}"


async def execute(
    command: Command,
    address: PlugAddress,
    client: Optional[httpx.AsyncClient] = None
) -> None:
    """
    Send a command to a plug and let it parse the answer.

    The result ends up in the command's fields. HTTP status codes are
    ignored: the plug answers errors in the body, so every response
    body goes to command.parse().

    Args:
        command: Freshly constructed command
        address: Plug host and password
        client: Shared client; a short-lived one is created if omitted

    Raises:
        TransportError: The plug could not be reached
        MalformedResponse: The plug replied with something unparseable
    """
    if client is None:
        async with httpx.AsyncClient(timeout=DEFAULT_TIMEOUT) as own_client:
            return await execute(command, address, own_client)

    url = control_url(address.host)
    body = command.render()

    try:
        response = await client.post(
            url,
            content=body,
            headers={"Content-Type": "application/xml"},
            auth=(USERNAME, address.password),
        )
    except httpx.TransportError as e:
        raise TransportError(f"{address.host}: {type(e).__name__}: {e}") from e

    logger.debug(
        f"{address.host}: {command.kind} answered HTTP {response.status_code} "
        f"({len(response.content)} bytes)"
    )
    command.parse(response.content)
