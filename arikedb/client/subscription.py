"""Provides Subscription, the handle of a live variable-event stream."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Generator
from enum import Enum
from typing import Any, Optional, Union

import grpc

from arikedb.common.data_point import DataPoint
from arikedb.rpc import wire_adapter
from arikedb.rpc.grpc_util.grpc_caller import is_server_unavailable_error
from arikedb.rpc.session_state import SessionState

logger = logging.getLogger(__name__)

DataPointHandler = Callable[[DataPoint], Union[None, Awaitable[None]]]


class SubscriptionState(Enum):
    """Lifecycle of a Subscription."""

    REQUESTING = "requesting"
    STREAMING = "streaming"
    CLOSED = "closed"
    ERRORED = "errored"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self not in (
            SubscriptionState.REQUESTING,
            SubscriptionState.STREAMING,
        )


class Subscription:
    """
    Drains a server-streaming SubscribeVariables call in a background task.

    Every message is converted to a `DataPoint` and handed to the handler
    before the next one is read, so the handler is never run concurrently
    with itself and sees points in the order the service sent them. The
    handler may be a plain function or a coroutine function.

    The stream ending, a read failure, or the handler raising all end the
    task quietly: nothing is raised to whoever awaits this handle. Inspect
    `state` and `error` to find out why a subscription stopped.
    """

    def __init__(
        self,
        call: grpc.aio.UnaryStreamCall,
        handler: DataPointHandler,
        description: str = "",
    ) -> None:
        """
        Args:
            call: The SubscribeVariables call, already issued.
            handler: Invoked once per received data point.
            description: Human readable label used in log lines.
        """
        self.__call = call
        self.__handler = handler
        self.__description = description
        self.__state = SubscriptionState.REQUESTING
        self.__error: Optional[BaseException] = None
        self.__task: Optional[asyncio.Task[None]] = None

    @property
    def state(self) -> SubscriptionState:
        return self.__state

    @property
    def error(self) -> Optional[BaseException]:
        """What stopped the stream when `state` is ERRORED, else None."""
        return self.__error

    @property
    def task(self) -> Optional[asyncio.Task[None]]:
        """The background task, available once the handshake succeeded."""
        return self.__task

    @property
    def description(self) -> str:
        return self.__description

    def done(self) -> bool:
        return self.__state.is_terminal

    async def _establish(self, session: SessionState) -> None:
        """Completes the handshake and starts draining the stream.

        Waits for the service to accept the call, takes a rotated token from
        its response headers and then schedules the drain task.

        Raises:
            grpc.aio.AioRpcError: If the service rejected the call.
        """
        assert self.__state == SubscriptionState.REQUESTING
        try:
            await self.__call.wait_for_connection()
            initial_metadata = await self.__call.initial_metadata()
            if (
                self.__call.done()
                and await self.__call.code() != grpc.StatusCode.OK
            ):
                # Trailers-only response: the service refused the stream
                # before sending headers.
                raise grpc.aio.AioRpcError(
                    await self.__call.code(),
                    initial_metadata,
                    await self.__call.trailing_metadata(),
                    details=await self.__call.details(),
                )
            session.absorb(initial_metadata)
        except asyncio.CancelledError:
            self.__state = SubscriptionState.CANCELLED
            self.__call.cancel()
            raise
        except Exception as e:
            self.__state = SubscriptionState.ERRORED
            self.__error = e
            self.__call.cancel()
            raise

        self.__state = SubscriptionState.STREAMING
        self.__task = asyncio.get_running_loop().create_task(
            self.__drain(), name=f"arikedb-subscription {self.__description}"
        )
        self.__task.add_done_callback(self.__on_task_done)
        logger.info("Subscription %s streaming.", self.__description)

    async def __drain(self) -> None:
        try:
            while True:
                message = await self.__call.read()
                if message is grpc.aio.EOF:
                    self.__state = SubscriptionState.CLOSED
                    logger.info(
                        "Subscription %s closed by the service.",
                        self.__description,
                    )
                    return

                result = self.__handler(wire_adapter.from_data_point(message))
                if inspect.isawaitable(result):
                    await result

        except asyncio.CancelledError:
            self.__state = SubscriptionState.CANCELLED
            self.__call.cancel()
            logger.info("Subscription %s cancelled.", self.__description)
            raise

        except Exception as e:
            self.__state = SubscriptionState.ERRORED
            self.__error = e
            self.__call.cancel()
            if is_server_unavailable_error(e):
                logger.warning(
                    "Subscription %s stopped, service unavailable: %r",
                    self.__description,
                    e,
                )
            else:
                logger.error(
                    "Subscription %s stopped on error: %r",
                    self.__description,
                    e,
                    exc_info=True,
                )

    def __on_task_done(self, task: asyncio.Task[None]) -> None:
        # A task cancelled before its first step never runs __drain.
        if task.cancelled() and not self.__state.is_terminal:
            self.__state = SubscriptionState.CANCELLED
            self.__call.cancel()

    def cancel(self) -> bool:
        """Requests cancellation of the stream.

        Takes effect at the task's next suspension point; the handler is not
        invoked again afterwards. Cancelling the gRPC call is the only
        teardown signal sent to the service.

        Returns:
            False if the subscription had already finished.
        """
        if self.done():
            return False
        if self.__task is None:
            self.__call.cancel()
            self.__state = SubscriptionState.CANCELLED
            return True
        return self.__task.cancel()

    async def stop(self) -> None:
        """Cancels the stream and waits for the background task to finish."""
        self.cancel()
        await self.wait()

    async def wait(self) -> SubscriptionState:
        """Waits for the background task to finish without raising.

        Returns:
            The terminal state the subscription ended in.
        """
        if self.__task is not None:
            await asyncio.wait({self.__task})
        return self.__state

    def __await__(self) -> Generator[Any, None, SubscriptionState]:
        return self.wait().__await__()

    def __repr__(self) -> str:
        return (
            f"Subscription({self.__description!r}, "
            f"state={self.__state.value})"
        )
