"""
Cancellation - Deadlines and caller-initiated aborts for provider calls

Provider calls are the only suspension points in the kernel. Each one runs
through guarded_call, which bounds it by a timeout and races it against an
optional CancellationToken.

License: MIT
"""

from typing import Any, Awaitable, Optional, Type
import asyncio
import logging

from ..exceptions import (
    OperationCancelledError,
    ProviderTimeoutError,
    RAGKernelError,
)

logger = logging.getLogger(__name__)


class CancellationToken:
    """
    Caller-owned abort signal shared by every provider call of one request.

    Create it inside the running event loop of the request it controls.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled by caller") -> None:
        """Signal every call observing this token to abort."""
        self.reason = reason
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self, operation: str = "operation") -> None:
        """Raise OperationCancelledError if the token has fired."""
        if self.is_cancelled:
            raise OperationCancelledError(f"{operation} aborted: {self.reason}")


async def guarded_call(
    call: Awaitable[Any],
    operation: str,
    error_class: Type[RAGKernelError],
    timeout: Optional[float] = None,
    cancellation_token: Optional[CancellationToken] = None,
) -> Any:
    """
    Await a provider call under a deadline and a cancellation token.

    Args:
        call: Awaitable performing the provider call
        operation: Short description used in error messages
        error_class: Kernel error raised for any non-kernel failure
        timeout: Deadline in seconds, None for no deadline
        cancellation_token: Optional caller abort signal

    Returns:
        The provider call result

    Raises:
        ProviderTimeoutError: If the deadline expires first
        OperationCancelledError: If the token fires first
        error_class: If the call raises anything outside the kernel taxonomy
    """
    task = asyncio.ensure_future(call)

    if cancellation_token is not None and cancellation_token.is_cancelled:
        await _discard(task)
        cancellation_token.raise_if_cancelled(operation)

    waiters = {task}
    cancel_waiter = None
    if cancellation_token is not None:
        cancel_waiter = asyncio.ensure_future(cancellation_token.wait())
        waiters.add(cancel_waiter)

    try:
        done, _ = await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        if cancel_waiter is not None:
            cancel_waiter.cancel()
        raise

    if cancel_waiter is not None and not cancel_waiter.done():
        cancel_waiter.cancel()

    if task in done:
        try:
            return task.result()
        except RAGKernelError:
            raise
        except Exception as e:
            raise error_class(f"{operation} failed: {str(e)}") from e

    await _discard(task)

    if cancel_waiter is not None and cancel_waiter in done:
        logger.info(f"{operation} cancelled by caller")
        raise OperationCancelledError(f"{operation} aborted: {cancellation_token.reason}")

    logger.warning(f"{operation} timed out after {timeout}s")
    raise ProviderTimeoutError(f"{operation} timed out after {timeout}s")


async def _discard(task: "asyncio.Future[Any]") -> None:
    """Cancel an in-flight call and wait for it to unwind."""
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)
