"""
On-chain role verification flow.

One engine serves every on-chain role kind; the differences live in
RoleProfile. Each user's session moves AWAITING_IDENTIFIER -> AWAITING_TX_HASH
-> (recorded, role granted, session removed).

Guarantees:
- every operation on one (owner, role kind) runs under that session's lock,
  so two messages of the same session are never processed concurrently;
  sessions of different users never wait on each other.
- the record store's uniqueness constraints decide who wins a transaction
  hash; the session map may be stale or empty without causing a double grant.
- every inbound event yields exactly one reply.
"""
import time
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from chainverify.core import messages as msg
from chainverify.core import rules
from chainverify.core.errors import (
    ConflictError,
    ExternalQueryFailure,
    InfrastructureError,
    ValidationRejection,
    VerificationError,
)
from chainverify.core.roles import RoleProfile, build_profiles, profile_for_button
from chainverify.core.state_machine import (
    AWAITING_IDENTIFIER,
    AWAITING_TX_HASH,
    DEVELOPER,
    NO_TX_SENTINEL,
)
from chainverify.gateway.base import Button, GatewayError, RoleGrantGateway
from chainverify.ledger import client as ledger_cmd
from chainverify.ledger.client import LedgerQueryClient, LedgerQueryError
from chainverify.ledger.parser import (
    parse_block_time,
    parse_staking_status,
    parse_transaction_status,
    parse_validator_address,
)
from chainverify.observability import metrics
from chainverify.observability.logging import log
from chainverify.settings import settings
from chainverify.store.models import VerificationRecord, VerificationSession
from chainverify.store.record_store import FIELD_WALLET, DuplicateRecordError, RecordStore
from chainverify.store.session_repo import SessionStore
from chainverify.utils.lock import LocalSessionLocks, SessionBusy
from chainverify.utils.time import now_s


@dataclass
class Reply:
    text: str
    # answered privately to the interaction instead of posted into the conversation
    ephemeral: bool = False
    buttons: Tuple[Button, ...] = ()
    # machine-readable result, e.g. "verified", "rejected:memo_mismatch"
    outcome: str = ""
    conversationId: Optional[str] = None
    delivered: bool = False


class VerificationEngine:
    def __init__(
        self,
        ledger: LedgerQueryClient,
        records: RecordStore,
        sessions: SessionStore,
        gateway: RoleGrantGateway,
        locks=None,
        profiles: Optional[Dict[str, RoleProfile]] = None,
        clock=now_s,
        cfg=settings,
    ):
        self.ledger = ledger
        self.records = records
        self.sessions = sessions
        self.gateway = gateway
        self.locks = locks if locks is not None else LocalSessionLocks()
        self.profiles = profiles if profiles is not None else build_profiles(cfg)
        self.clock = clock
        self.cfg = cfg

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def profile(self, role_kind: str) -> RoleProfile:
        p = self.profiles.get(role_kind)
        if p is None:
            raise ValueError(f"unknown role kind: {role_kind}")
        return p

    def _hold(self, owner_id: str, role_kind: str):
        wait = self.cfg.SESSION_BUSY_POLICY != "reject"
        return self.locks.hold(f"{role_kind.lower()}:{owner_id}", wait=wait)

    async def _metric(self, fn, *args) -> None:
        try:
            await fn(*args)
        except Exception as e:
            log(event="metrics_failed", metric=getattr(fn, "__name__", "?"), error=str(e)[:200])

    async def _query(self, command: str, failure_reply: str, **args) -> str:
        start = time.time()
        try:
            out = await self.ledger.run(command, **args)
        except LedgerQueryError as e:
            await self._metric(metrics.increment_ledger_failure)
            raise ExternalQueryFailure(failure_reply, f"{command}_failed") from e
        await self._metric(metrics.record_ledger_latency, int((time.time() - start) * 1000))
        return out

    async def _deliver(self, conversation_id: str, reply: Reply) -> Reply:
        reply.conversationId = conversation_id
        try:
            await self.gateway.send_message(conversation_id, reply.text, reply.buttons)
            reply.delivered = True
        except GatewayError as e:
            log(
                event="reply_delivery_failed",
                conversationId=conversation_id,
                outcome=reply.outcome,
                operation=e.operation,
                statusCode=e.status_code,
                error=str(e)[:500],
            )
        return reply

    # ------------------------------------------------------------------
    # entry point: role selection
    # ------------------------------------------------------------------
    async def select_role(self, owner_id: str, owner_name: str, role_kind: str) -> Reply:
        profile = self.profile(role_kind)
        try:
            async with self._hold(owner_id, profile.kind):
                return await self._select_role(profile, owner_id, owner_name)
        except SessionBusy:
            return Reply(msg.IN_PROGRESS, ephemeral=True, outcome="busy")
        except GatewayError as e:
            log(
                event="verification_start_failed",
                ownerId=owner_id,
                roleKind=profile.kind,
                operation=e.operation,
                statusCode=e.status_code,
                error=str(e)[:500],
            )
            await self._metric(metrics.increment_outcome, profile.kind, "infra_error")
            return Reply(
                msg.START_FAILED.format(label_lower=profile.label.lower()),
                ephemeral=True,
                outcome="infra_error",
            )

    async def _select_role(self, profile: RoleProfile, owner_id: str, owner_name: str) -> Reply:
        if await self.gateway.has_role(owner_id, profile.role_id):
            return Reply(msg.ALREADY_VERIFIED.format(label=profile.label), ephemeral=True, outcome="already_verified")

        session = await self.sessions.get(owner_id, profile.kind)
        if session is not None:
            if await self.gateway.conversation_exists(session.conversationId):
                return Reply(
                    msg.ACTIVE_CONVERSATION.format(url=self.gateway.conversation_url(session.conversationId)),
                    ephemeral=True,
                    outcome="active_conversation",
                    conversationId=session.conversationId,
                )
            # conversation is gone: the session can never be answered again
            await self.sessions.delete(owner_id, profile.kind)
            log(event="session_discarded_stale", ownerId=owner_id, roleKind=profile.kind,
                conversationId=session.conversationId)

        conversation_id = await self.gateway.open_private_conversation(
            self.cfg.CLAIM_CHANNEL_ID,
            f"{profile.conversation_prefix}-{owner_name or owner_id}",
            owner_id,
        )
        prompt = profile.prompt.format(
            owner=owner_id,
            restart=profile.restart_command,
            min_stake=rules.format_amount(profile.min_stake) if profile.min_stake is not None else "",
        )
        try:
            await self.gateway.send_message(conversation_id, prompt)
        except GatewayError:
            # no session points at a conversation without its prompt
            try:
                await self.gateway.delete_conversation(conversation_id)
            except GatewayError as e:
                log(event="conversation_cleanup_failed", ownerId=owner_id, roleKind=profile.kind,
                    conversationId=conversation_id, error=str(e)[:500])
            raise

        session = VerificationSession(ownerId=owner_id, roleKind=profile.kind, conversationId=conversation_id)
        await self.sessions.save(session)

        log(event="verification_started", ownerId=owner_id, roleKind=profile.kind, conversationId=conversation_id)
        await self._metric(metrics.increment_outcome, profile.kind, "started")
        return Reply(
            msg.STARTED.format(url=self.gateway.conversation_url(conversation_id)),
            ephemeral=True,
            outcome="started",
            conversationId=conversation_id,
        )

    # ------------------------------------------------------------------
    # inbound conversation message
    # ------------------------------------------------------------------
    async def _route(self, owner_id: str, conversation_id: str) -> Optional[RoleProfile]:
        for profile in self.profiles.values():
            session = await self.sessions.get(owner_id, profile.kind)
            if session is not None and session.conversationId == conversation_id:
                return profile
        return None

    async def handle_message(self, owner_id: str, conversation_id: str, text: str) -> Optional[Reply]:
        """
        Advance the owner's session that lives in `conversation_id`.
        Returns None when the message does not belong to any verification.
        """
        profile = await self._route(owner_id, conversation_id)
        if profile is None:
            return None

        try:
            async with self._hold(owner_id, profile.kind):
                # reload under the lock: a previous message may have moved the session
                session = await self.sessions.get(owner_id, profile.kind)
                if session is None or session.conversationId != conversation_id:
                    return None
                reply = await self._advance(profile, session, text)
                return await self._deliver(conversation_id, reply)
        except SessionBusy:
            return await self._deliver(conversation_id, Reply(msg.IN_PROGRESS, outcome="busy"))

    async def _advance(self, profile: RoleProfile, session: VerificationSession, text: str) -> Reply:
        step = session.step
        try:
            if step == AWAITING_IDENTIFIER:
                return await self._accept_identifier(profile, session, text)
            if step == AWAITING_TX_HASH:
                return await self._accept_transaction(profile, session, text)
            raise InfrastructureError(msg.CONTACT_MODERATOR, f"unknown_step:{step}")
        except InfrastructureError as e:
            log(
                event="verification_infra_error",
                ownerId=session.ownerId,
                roleKind=profile.kind,
                step=step,
                conversationId=session.conversationId,
                candidateAddress=session.candidateAddress,
                reason=e.reason,
                cause=repr(e.__cause__) if e.__cause__ else "",
            )
            await self._metric(metrics.increment_outcome, profile.kind, "infra_error")
            return Reply(e.reply, outcome=f"{e.kind}:{e.reason}")
        except VerificationError as e:
            log(
                event="verification_rejected",
                ownerId=session.ownerId,
                roleKind=profile.kind,
                step=step,
                kind=e.kind,
                reason=e.reason,
            )
            await self._metric(
                metrics.increment_outcome, profile.kind, "conflict" if isinstance(e, ConflictError) else "rejected"
            )
            return Reply(e.reply, outcome=f"{e.kind}:{e.reason}")
        except Exception as e:
            # store or other unexpected failure: still answer, keep the session for a moderator
            log(
                event="verification_unexpected_error",
                ownerId=session.ownerId,
                roleKind=profile.kind,
                step=step,
                errorType=type(e).__name__,
                error=str(e)[:500],
            )
            await self._metric(metrics.increment_outcome, profile.kind, "infra_error")
            return Reply(msg.CONTACT_MODERATOR, outcome="infrastructure:unexpected")

    async def _accept_identifier(self, profile: RoleProfile, session: VerificationSession, text: str) -> Reply:
        identifier = rules.normalize_identifier(profile, text)

        if profile.resolves_address:
            out = await self._query(ledger_cmd.VALIDATOR_LOOKUP, msg.VALIDATOR_LOOKUP_FAILED)
            address = parse_validator_address(out, identifier)
            if not address:
                raise ExternalQueryFailure(msg.VALIDATOR_LOOKUP_FAILED, "validator_not_found")
        else:
            address = identifier

        if await self.records.exists_for_wallet(address, profile.kind):
            raise ValidationRejection(profile.address_taken, "address_taken")

        if profile.min_stake is not None:
            out = await self._query(ledger_cmd.ACCOUNT_STAKING, msg.ACCOUNT_LOOKUP_FAILED, address=address)
            rules.check_stake(profile, parse_staking_status(out))

        session.candidateAddress = address
        session.candidateIdentifier = profile.candidate_identifier(identifier, address)
        session.step = AWAITING_TX_HASH
        await self.sessions.save(session)

        log(event="identifier_accepted", ownerId=session.ownerId, roleKind=profile.kind, address=address)
        await self._metric(metrics.increment_outcome, profile.kind, "identifier_accepted")
        return Reply(
            profile.instruct.format(
                address=address,
                identifier=session.candidateIdentifier,
                max_age_label=msg.max_age_label(self.cfg.TX_MAX_AGE_SEC),
            ),
            outcome="identifier_accepted",
        )

    async def _accept_transaction(self, profile: RoleProfile, session: VerificationSession, text: str) -> Reply:
        tx_hash = rules.normalize_tx_hash(text)

        out = await self._query(ledger_cmd.TRANSACTION_STATUS, msg.TX_NOT_FINAL, tx_hash=tx_hash)
        status = parse_transaction_status(out)
        rules.check_transaction(profile, status, session.candidateAddress, session.candidateIdentifier)

        out = await self._query(ledger_cmd.BLOCK_TIME, msg.BLOCK_TIME_FAILED, block_hash=status.blockHash)
        block_time = parse_block_time(out)
        if block_time is None:
            raise ExternalQueryFailure(msg.BLOCK_TIME_FAILED, "block_time_unparseable")
        rules.check_freshness(block_time, self.clock(), self.cfg.TX_MAX_AGE_SEC)

        if await self.records.exists_by_tx_hash(tx_hash):
            raise ValidationRejection(msg.TX_ALREADY_USED, "tx_already_used")

        record = VerificationRecord(
            txHash=tx_hash,
            walletAddress=session.candidateAddress,
            ownerId=session.ownerId,
            roleKind=profile.kind,
        )
        try:
            await self.records.insert(record)
        except DuplicateRecordError as e:
            if e.field == FIELD_WALLET:
                raise ConflictError(profile.address_taken, "address_taken") from e
            raise ConflictError(msg.TX_ALREADY_USED, "tx_already_used") from e

        try:
            await self.gateway.grant_role(session.ownerId, profile.role_id)
        except GatewayError as e:
            raise InfrastructureError(msg.CONTACT_MODERATOR, "grant_failed") from e

        try:
            await self.sessions.delete(session.ownerId, profile.kind)
        except Exception as e:
            # role is already granted; a leftover session is only a stale pointer
            log(event="session_cleanup_failed", ownerId=session.ownerId, roleKind=profile.kind, error=str(e)[:500])

        log(
            event="role_granted",
            ownerId=session.ownerId,
            roleKind=profile.kind,
            address=session.candidateAddress,
            txHash=tx_hash,
        )
        await self._metric(metrics.increment_outcome, profile.kind, "verified")
        return Reply(
            msg.VERIFIED.format(label=profile.label),
            buttons=(Button(profile.delete_button_id, msg.DELETE_BUTTON_LABEL),),
            outcome="verified",
        )

    # ------------------------------------------------------------------
    # restart
    # ------------------------------------------------------------------
    async def restart(self, owner_id: str, role_kind: str) -> Reply:
        profile = self.profile(role_kind)
        try:
            async with self._hold(owner_id, profile.kind):
                return await self._restart(profile, owner_id)
        except SessionBusy:
            return Reply(msg.IN_PROGRESS, ephemeral=True, outcome="busy")
        except GatewayError as e:
            log(
                event="verification_restart_failed",
                ownerId=owner_id,
                roleKind=profile.kind,
                operation=e.operation,
                statusCode=e.status_code,
                error=str(e)[:500],
            )
            return Reply(msg.CONTACT_MODERATOR, ephemeral=True, outcome="infra_error")

    async def _restart(self, profile: RoleProfile, owner_id: str) -> Reply:
        session = await self.sessions.get(owner_id, profile.kind)
        if session is None:
            return Reply(msg.RESTART_NO_SESSION, ephemeral=True, outcome="no_session")

        if not await self.gateway.conversation_exists(session.conversationId):
            await self.sessions.delete(owner_id, profile.kind)
            log(event="session_discarded_stale", ownerId=owner_id, roleKind=profile.kind,
                conversationId=session.conversationId)
            return Reply(msg.RESTART_CONVERSATION_GONE, ephemeral=True, outcome="conversation_gone")

        session.reset()
        await self.sessions.save(session)
        await self.gateway.send_message(
            session.conversationId,
            profile.restart_prompt.format(owner=owner_id, restart=profile.restart_command),
        )
        log(event="verification_restarted", ownerId=owner_id, roleKind=profile.kind,
            conversationId=session.conversationId)
        return Reply(msg.RESTARTED, ephemeral=True, outcome="restarted", conversationId=session.conversationId)

    # ------------------------------------------------------------------
    # "delete this thread" button
    # ------------------------------------------------------------------
    async def delete_conversation(self, owner_id: str, conversation_id: str, custom_id: str) -> Reply:
        profile = profile_for_button(self.profiles, custom_id)
        if profile is None:
            raise ValueError(f"unknown button: {custom_id}")

        try:
            await self.gateway.delete_conversation(conversation_id)
        except GatewayError as e:
            log(event="conversation_delete_failed", ownerId=owner_id, conversationId=conversation_id,
                statusCode=e.status_code, error=str(e)[:500])
            return Reply(msg.DELETE_FAILED, ephemeral=True, outcome="infra_error")

        # a session must never point at a deleted conversation
        for p in self.profiles.values():
            s = await self.sessions.get(owner_id, p.kind)
            if s is not None and s.conversationId == conversation_id:
                await self.sessions.delete(owner_id, p.kind)

        log(event="conversation_deleted", ownerId=owner_id, roleKind=profile.kind, conversationId=conversation_id)
        return Reply(msg.DELETED, ephemeral=True, outcome="deleted")

    # ------------------------------------------------------------------
    # developer records (written by the GitHub OAuth flow)
    # ------------------------------------------------------------------
    async def record_developer_verification(self, owner_id: str, github_profile: str) -> Reply:
        record = VerificationRecord(
            txHash=NO_TX_SENTINEL,
            walletAddress=NO_TX_SENTINEL,
            ownerId=owner_id,
            roleKind=DEVELOPER,
            githubProfile=github_profile,
        )
        try:
            await self.records.insert(record)
        except DuplicateRecordError:
            log(event="developer_profile_taken", ownerId=owner_id)
            return Reply(msg.DEV_PROFILE_TAKEN, ephemeral=True, outcome="conflict:github_profile_taken")
        log(event="developer_recorded", ownerId=owner_id)
        return Reply(msg.DEV_RECORDED, ephemeral=True, outcome="recorded")
