from dataclasses import dataclass
from typing import Sequence


class GatewayError(Exception):
    """Role or conversation operation failed on the chat platform."""

    def __init__(self, operation: str, detail: str = "", status_code: int = 0):
        super().__init__(f"{operation} failed: {detail}" if detail else f"{operation} failed")
        self.operation = operation
        self.detail = detail
        self.status_code = status_code


@dataclass(frozen=True)
class Button:
    custom_id: str
    label: str


class RoleGrantGateway:
    """What the verification flow needs from the chat platform."""

    async def has_role(self, user_id: str, role_id: str) -> bool:
        raise NotImplementedError

    async def grant_role(self, user_id: str, role_id: str) -> None:
        raise NotImplementedError

    async def open_private_conversation(self, parent_channel_id: str, name: str, participant: str) -> str:
        """Create a private conversation with `participant` and return its handle."""
        raise NotImplementedError

    async def conversation_exists(self, handle: str) -> bool:
        raise NotImplementedError

    async def send_message(self, handle: str, text: str, buttons: Sequence[Button] = ()) -> None:
        raise NotImplementedError

    async def delete_conversation(self, handle: str) -> None:
        raise NotImplementedError

    def conversation_url(self, handle: str) -> str:
        return handle

    async def close(self) -> None:
        pass
