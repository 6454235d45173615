import asyncio
import logging
from typing import Iterable

from ..errors import StoreError, TransportError
from ..schemas import OutcomeReason
from .renderer import PayloadRenderer
from .schemas import DispatchInstruction, DispatchResult, DispatchTally, PushMessage
from .tokens import TokenDirectory

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """
    Delivers dispatch instructions through the push transport.

    One recipient's failure never reaches the caller or other recipients: every
    failure becomes an undelivered DispatchResult with a reason.
    """

    def __init__(self, ctx, tokens: TokenDirectory = None, renderer: PayloadRenderer = None):
        self.transport = ctx.transport
        self.tokens = tokens or TokenDirectory(ctx)
        self.renderer = renderer or PayloadRenderer(
            default_locale=ctx.settings.default_locale,
            click_action=ctx.settings.click_action,
        )
        self.max_concurrency = max(1, ctx.settings.push_max_concurrency)

    async def dispatch(self, instruction: DispatchInstruction) -> DispatchResult:
        """
        Deliver a single instruction.

        Args:
            instruction: Recipient and render context produced by the router

        Returns:
            DispatchResult: delivered flag, reason when undelivered, FCM message id
        """
        recipient_id = instruction.recipient_id

        # 1. Resolve the recipient's token
        try:
            recipient = instruction.recipient
            if recipient is None:
                recipient = await self.tokens.lookup(recipient_id)
            token = self.tokens.extract(recipient)
        except StoreError as e:
            logger.error(f"Error resolving token for user {recipient_id}: {str(e)}")
            return DispatchResult(recipient_id=recipient_id, delivered=False, reason=OutcomeReason.STORE_ERROR)

        if not token:
            logger.info(f"User {recipient_id} has no FCM token")
            return DispatchResult(recipient_id=recipient_id, delivered=False, reason=OutcomeReason.NO_TOKEN)

        # 2. Render the payload
        try:
            context = {**instruction.context, 'actor_id': instruction.actor_id, 'recipient': recipient}
            payload = self.renderer.render(instruction.kind, context)
        except (KeyError, ValueError) as e:
            logger.error(f"Error rendering {instruction.kind.value} notification for {recipient_id}: {str(e)}")
            return DispatchResult(recipient_id=recipient_id, delivered=False, reason=OutcomeReason.RENDER_ERROR)

        # 3. Send
        push = PushMessage(token=token, title=payload.title, body=payload.body, data=payload.data, channel=payload.channel)
        try:
            message_id = await self.transport.send(push)
        except TransportError as e:
            logger.error(f"Error sending {instruction.kind.value} notification to {recipient_id}: {str(e)}")
            if e.unregistered:
                await self._invalidate_token(recipient_id)
            return DispatchResult(recipient_id=recipient_id, delivered=False, reason=OutcomeReason.TRANSPORT_ERROR)
        except Exception as e:
            logger.error(f"Unexpected push transport failure for {recipient_id}: {str(e)}", exc_info=True)
            return DispatchResult(recipient_id=recipient_id, delivered=False, reason=OutcomeReason.TRANSPORT_ERROR)

        logger.info(f"Sent {instruction.kind.value} notification to {recipient_id}: {message_id}")
        return DispatchResult(recipient_id=recipient_id, delivered=True, message_id=message_id)

    async def dispatch_all(self, instructions: Iterable[DispatchInstruction]) -> DispatchTally:
        """
        Deliver many instructions concurrently and tally the outcome.

        Returns:
            DispatchTally: sent/total counts and the per-recipient results
        """
        instructions = list(instructions)
        if not instructions:
            return DispatchTally()

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def bounded(instruction: DispatchInstruction) -> DispatchResult:
            async with semaphore:
                return await self.dispatch(instruction)

        settled = await asyncio.gather(*(bounded(i) for i in instructions), return_exceptions=True)

        results = []
        for instruction, result in zip(instructions, settled):
            if isinstance(result, BaseException):
                logger.error(f"Dispatch to {instruction.recipient_id} raised: {result!r}")
                result = DispatchResult(
                    recipient_id=instruction.recipient_id,
                    delivered=False,
                    reason=OutcomeReason.UNEXPECTED_ERROR,
                )
            results.append(result)

        tally = DispatchTally(sent=sum(1 for r in results if r.delivered), total=len(results), results=results)
        logger.info(f"Dispatched notifications: {tally.summary()} sent")
        return tally

    async def _invalidate_token(self, recipient_id: str) -> None:
        try:
            await self.tokens.invalidate(recipient_id)
        except StoreError as e:
            logger.error(f"Error removing invalid token for user {recipient_id}: {str(e)}")
