"""
RoleGrantGateway over the Discord REST API (v10).

Private conversations are private threads under the claim channel.
"""
import time
from typing import Optional, Sequence

import httpx

from chainverify.gateway.base import Button, GatewayError, RoleGrantGateway
from chainverify.observability.logging import log
from chainverify.settings import settings

PRIVATE_THREAD = 12
ACTION_ROW = 1
BUTTON = 2
BUTTON_SECONDARY = 2
THREAD_AUTO_ARCHIVE_MIN = 60


class DiscordGateway(RoleGrantGateway):
    def __init__(
        self,
        token: Optional[str] = None,
        guild_id: Optional[str] = None,
        api_base: Optional[str] = None,
        timeout_sec: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.token = token if token is not None else settings.DISCORD_BOT_TOKEN
        self.guild_id = guild_id if guild_id is not None else settings.DISCORD_GUILD_ID
        self.api_base = (api_base or settings.DISCORD_API_BASE).rstrip("/")
        self._client = client or httpx.AsyncClient(
            timeout=timeout_sec if timeout_sec is not None else settings.GATEWAY_TIMEOUT_SEC
        )

    async def close(self) -> None:
        await self._client.aclose()

    def conversation_url(self, handle: str) -> str:
        return f"https://discord.com/channels/{self.guild_id}/{handle}"

    async def _request(self, operation: str, method: str, path: str, reason: str = "", **kwargs) -> httpx.Response:
        headers = {"Authorization": f"Bot {self.token}"}
        if reason:
            headers["X-Audit-Log-Reason"] = reason
        start = time.time()
        try:
            resp = await self._client.request(method, f"{self.api_base}{path}", headers=headers, **kwargs)
        except httpx.HTTPError as e:
            log(
                event="gateway_request_exception",
                operation=operation,
                errorType=type(e).__name__,
                error=str(e)[:500],
            )
            raise GatewayError(operation, str(e)) from e

        log(
            event="gateway_request",
            operation=operation,
            statusCode=int(resp.status_code),
            elapsedMs=int((time.time() - start) * 1000),
        )
        return resp

    @staticmethod
    def _raise_for(operation: str, resp: httpx.Response) -> None:
        if not (200 <= resp.status_code < 300):
            raise GatewayError(operation, (resp.text or "")[:500], resp.status_code)

    async def has_role(self, user_id: str, role_id: str) -> bool:
        resp = await self._request("fetch_member", "GET", f"/guilds/{self.guild_id}/members/{user_id}")
        self._raise_for("fetch_member", resp)
        return str(role_id) in [str(r) for r in (resp.json().get("roles") or [])]

    async def grant_role(self, user_id: str, role_id: str) -> None:
        resp = await self._request(
            "grant_role",
            "PUT",
            f"/guilds/{self.guild_id}/members/{user_id}/roles/{role_id}",
            reason="On-chain verification completed",
        )
        self._raise_for("grant_role", resp)

    async def open_private_conversation(self, parent_channel_id: str, name: str, participant: str) -> str:
        resp = await self._request(
            "create_thread",
            "POST",
            f"/channels/{parent_channel_id}/threads",
            reason=f"Verification for {participant}",
            json={
                "name": name[:100],
                "type": PRIVATE_THREAD,
                "auto_archive_duration": THREAD_AUTO_ARCHIVE_MIN,
                "invitable": False,
            },
        )
        self._raise_for("create_thread", resp)
        thread_id = str(resp.json()["id"])

        resp = await self._request("add_thread_member", "PUT", f"/channels/{thread_id}/thread-members/{participant}")
        self._raise_for("add_thread_member", resp)
        return thread_id

    async def conversation_exists(self, handle: str) -> bool:
        resp = await self._request("fetch_channel", "GET", f"/channels/{handle}")
        if resp.status_code == 404:
            return False
        self._raise_for("fetch_channel", resp)
        return True

    async def send_message(self, handle: str, text: str, buttons: Sequence[Button] = ()) -> None:
        body = {"content": text, "allowed_mentions": {"parse": ["users"]}}
        if buttons:
            body["components"] = [
                {
                    "type": ACTION_ROW,
                    "components": [
                        {"type": BUTTON, "style": BUTTON_SECONDARY, "label": b.label, "custom_id": b.custom_id}
                        for b in buttons
                    ],
                }
            ]
        resp = await self._request("send_message", "POST", f"/channels/{handle}/messages", json=body)
        self._raise_for("send_message", resp)

    async def delete_conversation(self, handle: str) -> None:
        resp = await self._request(
            "delete_channel",
            "DELETE",
            f"/channels/{handle}",
            reason="Thread deleted after successful verification.",
        )
        self._raise_for("delete_channel", resp)
