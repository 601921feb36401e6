"""In-process stand-ins for the ledger client and the chat gateway."""
import asyncio
from types import SimpleNamespace

from chainverify.gateway.base import GatewayError, RoleGrantGateway
from chainverify.ledger.client import LedgerQueryError

VALIDATOR_ROLE = "role-validator"
DELEGATOR_ROLE = "role-delegator"


class FakeLedger:
    """
    command -> str | Exception | callable(**args) returning either.
    Unknown commands fail like an erroring CLI.
    """

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []

    async def run(self, command, **args):
        self.calls.append((command, args))
        # let concurrent steps interleave the way real subprocess calls do
        await asyncio.sleep(0)
        value = self.responses.get(command)
        if callable(value):
            value = value(**args)
        if value is None:
            raise LedgerQueryError(command, "no response configured")
        if isinstance(value, Exception):
            raise value
        return value


class FakeGateway(RoleGrantGateway):
    def __init__(self):
        self.roles = {}            # user -> set(role ids)
        self.conversations = set()
        self.messages = []         # (handle, text, buttons)
        self.opened = []           # (parent, name, participant)
        self.granted = []          # (user, role)
        self.deleted = []
        self.fail = set()          # operation names that raise GatewayError
        self._next = 1000

    def _check(self, op):
        if op in self.fail:
            raise GatewayError(op, "simulated failure", 500)

    async def has_role(self, user_id, role_id):
        self._check("has_role")
        return role_id in self.roles.get(user_id, set())

    async def grant_role(self, user_id, role_id):
        self._check("grant_role")
        self.granted.append((user_id, role_id))
        self.roles.setdefault(user_id, set()).add(role_id)

    async def open_private_conversation(self, parent_channel_id, name, participant):
        self._check("open_private_conversation")
        self._next += 1
        handle = f"thread-{self._next}"
        self.conversations.add(handle)
        self.opened.append((parent_channel_id, name, participant))
        return handle

    async def conversation_exists(self, handle):
        self._check("conversation_exists")
        return handle in self.conversations

    async def send_message(self, handle, text, buttons=()):
        self._check("send_message")
        self.messages.append((handle, text, tuple(buttons)))

    async def delete_conversation(self, handle):
        self._check("delete_conversation")
        self.deleted.append(handle)
        self.conversations.discard(handle)

    def conversation_url(self, handle):
        return f"https://chat.example/{handle}"


def make_cfg(**overrides):
    cfg = dict(
        SESSION_BUSY_POLICY="queue",
        CLAIM_CHANNEL_ID="claim-channel",
        TX_MAX_AGE_SEC=3600,
        VALIDATOR_ROLE_ID=VALIDATOR_ROLE,
        DELEGATOR_ROLE_ID=DELEGATOR_ROLE,
        DELEGATOR_MIN_STAKE="1000",
    )
    cfg.update(overrides)
    return SimpleNamespace(**cfg)
