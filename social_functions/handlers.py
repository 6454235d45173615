"""
Trigger handlers.

Every handler takes ``(event, ctx)`` and returns a HandlerOutcome. Failures are
logged and reported as FAILED outcomes rather than raised, so a malformed event
is never redelivered in a tight loop. ``update_user_metrics`` is the exception:
synchronous callers receive structured errors.
"""
import functools
import logging
from typing import Any, Dict

from .errors import CallableError, CodecError, StorageError, StoreError
from .media.schemas import RawAsset
from .notifications.schemas import DomainEvent, EventKind
from .schemas import DocumentEvent, HandlerOutcome, OutcomeReason, StorageEvent

logger = logging.getLogger(__name__)


def safe_handler(handler):
    @functools.wraps(handler)
    async def wrapper(*args, **kwargs) -> HandlerOutcome:
        try:
            return await handler(*args, **kwargs)
        except StoreError as e:
            logger.error(f"Document store failure in {handler.__name__}: {str(e)}", exc_info=True)
            return HandlerOutcome.failed(OutcomeReason.STORE_ERROR, error=str(e))
        except StorageError as e:
            logger.error(f"Object storage failure in {handler.__name__}: {str(e)}", exc_info=True)
            return HandlerOutcome.failed(OutcomeReason.STORAGE_ERROR, error=str(e))
        except CodecError as e:
            logger.error(f"Image codec failure in {handler.__name__} (exit code {e.exit_code}): {str(e)}")
            return HandlerOutcome.failed(OutcomeReason.CODEC_ERROR, error=str(e))
        except Exception as e:
            logger.exception(f"Unexpected error in {handler.__name__}: {str(e)}")
            return HandlerOutcome.failed(OutcomeReason.UNEXPECTED_ERROR, error=str(e))
    return wrapper


@safe_handler
async def route_and_dispatch(kind: EventKind, event: DocumentEvent, ctx) -> HandlerOutcome:
    """Route a document write and deliver the resulting notifications"""
    document = event.after
    if document is None:
        logger.warning(f"{kind.value} event for {event.path} carries no document")
        return HandlerOutcome.ignored(OutcomeReason.NOT_FOUND, path=event.path)

    domain_event = DomainEvent(
        kind=kind,
        document_id=event.document_id,
        params=event.params,
        document=document,
        previous=event.before,
    )
    instructions = await ctx.router.route(domain_event)
    if not instructions:
        return HandlerOutcome.ignored(OutcomeReason.NO_RECIPIENTS, path=event.path)

    tally = await ctx.dispatcher.dispatch_all(instructions)
    detail = {'path': event.path, 'sent': tally.sent, 'total': tally.total}

    if tally.total == 1 and tally.sent == 0:
        reason = tally.results[0].reason
        if reason == OutcomeReason.NO_TOKEN:
            return HandlerOutcome.ignored(reason, **detail)
        return HandlerOutcome.failed(reason, **detail)
    return HandlerOutcome.ok(**detail)


@safe_handler
async def on_user_created(event: DocumentEvent, ctx) -> HandlerOutcome:
    user_id = event.params.get('userId') or event.document_id
    await ctx.accounts.initialize_user(user_id, event.after or {})
    return HandlerOutcome.ok(userId=user_id)


@safe_handler
async def optimize_image(event: StorageEvent, ctx) -> HandlerOutcome:
    asset = RawAsset(path=event.name, content_type=event.contentType, bucket=event.bucket)
    result = await ctx.media.process(asset)
    if result.skipped:
        return HandlerOutcome.ignored(result.reason, path=asset.path)
    return HandlerOutcome.ok(
        thumbnail=result.thumbnail_ref,
        optimized=result.optimized_ref,
        writtenBackTo=result.written_back_to,
    )


@safe_handler
async def cleanup_expired_stories(event, ctx) -> HandlerOutcome:
    result = await ctx.reaper.sweep()
    return HandlerOutcome.ok(deletedCount=result.deleted, mediaFilesDeleted=result.media_deleted)


@safe_handler
async def cleanup_expired_tokens(event, ctx) -> HandlerOutcome:
    cleared = await ctx.tokens.sweep_expired()
    return HandlerOutcome.ok(clearedCount=cleared)


async def update_user_metrics(payload: Dict[str, Any], ctx) -> Dict[str, Any]:
    """
    Synchronous call: increment a user activity counter.

    Raises:
        CallableError: ``invalid-argument`` for bad input, ``internal`` otherwise
    """
    try:
        return await ctx.accounts.update_metrics(payload)
    except CallableError:
        raise
    except Exception as e:
        logger.error(f"Error updating user metrics: {str(e)}", exc_info=True)
        raise CallableError(str(e), status="internal") from e
