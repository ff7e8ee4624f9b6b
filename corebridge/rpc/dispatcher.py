"""Request dispatcher: envelope parsing, validation and per-call task spawning."""

from __future__ import annotations

from typing import Any

from loguru import logger

from corebridge.engine.handle import CoreHandle
from corebridge.rpc.error_boundary import (
    engine_error_response,
    protocol_error_response,
    unhandled_exception_response,
)
from corebridge.rpc.protocol import RpcRequest, RpcResponse, error_response
from corebridge.rpc.registry import CallContext, HandlerRegistry, HandlerSpec
from corebridge.rpc.serialization import decode_envelope, parse_request
from corebridge.session.pending import CancelToken, PendingCall
from corebridge.session.session import Session
from corebridge.utils.exceptions import (
    INVALID_REQUEST,
    CallCanceled,
    EngineError,
    InvalidRequestError,
    MethodNotFoundError,
    ProtocolError,
    TransportClosed,
)


class RequestDispatcher:
    """Turns raw inbound payloads into concurrent calls against the engine.

    Results are observable only through the session's outbound queue.
    """

    def __init__(self, core: CoreHandle, registry: HandlerRegistry):
        self.core = core
        self.registry = registry

    async def dispatch(self, session: Session, raw: bytes | bytearray | str) -> None:
        if session.closed:
            raise TransportClosed(f"session {session.id} is closed")
        try:
            payload = decode_envelope(raw)
        except ProtocolError as exc:
            await session.deliver(protocol_error_response(exc=exc, log_debug=logger.debug))
            return
        if isinstance(payload, list):
            if not payload:
                await session.deliver(
                    protocol_error_response(exc=InvalidRequestError("empty batch"), log_debug=logger.debug)
                )
                return
            for frame in payload:
                await self._dispatch_frame(session, frame)
            return
        await self._dispatch_frame(session, payload)

    async def _dispatch_frame(self, session: Session, frame: Any) -> None:
        if session.closed:
            return
        request: RpcRequest | None = None
        try:
            request = parse_request(frame)
            entry = self.registry.get(request.method)
            if entry is None:
                raise MethodNotFoundError(request.method, request_id=request.id)
            entry.check_params(request.params, request.id)
        except ProtocolError as exc:
            if request is not None and request.is_notification:
                logger.debug("Dropping rejected notification {}: {}", request.method, exc.message)
                return
            await session.deliver(protocol_error_response(exc=exc, log_debug=logger.debug))
            return

        if request.is_notification:
            token = CancelToken()
            session.spawn(
                self._run_notification(session, token, entry, request),
                token=token,
                name=f"rpc-notify:{session.id}:{request.method}",
            )
            return

        call = PendingCall(id=request.id, method=request.method)
        if not session.pending.add(call):
            logger.debug("Session {} rejected duplicate id={}", session.id, request.id)
            await session.deliver(error_response(request.id, INVALID_REQUEST, "duplicate id"))
            return
        call.task = session.spawn(
            self._run_call(session, call, entry, request.params),
            token=call.token,
            name=f"rpc:{session.id}:{request.id}",
        )

    async def _run_call(self, session: Session, call: PendingCall, entry: HandlerSpec, params: Any) -> None:
        ctx = CallContext(session=session, core=self.core, request_id=call.id, method=call.method)
        try:
            result = await call.token.race(entry.handler(ctx, params), request_id=call.id)
        except CallCanceled as exc:
            logger.debug("Session {} call id={} {}: {}", session.id, call.id, call.method, exc.message)
            return
        except ProtocolError as exc:
            response = protocol_error_response(exc=exc, request_id=call.id)
        except EngineError as exc:
            response = engine_error_response(
                request_id=call.id, method=call.method, exc=exc, log_warning=logger.warning
            )
        except Exception as exc:
            response = unhandled_exception_response(
                request_id=call.id, method=call.method, exc=exc, log_exception=logger.exception
            )
        else:
            response = RpcResponse(id=call.id, result=result)

        # The id stays pending until the Response is actually queued.
        try:
            queued = await call.token.race(
                session.deliver(response, claim=lambda: session.pending.settle(call)),
                request_id=call.id,
            )
        except CallCanceled as exc:
            logger.debug("Session {} call id={} {} before its response was queued", session.id, call.id, exc.message)
            return
        if not queued:
            logger.debug("Session {} discarding late result for id={}", session.id, call.id)

    async def _run_notification(self, session: Session, token: CancelToken, entry: HandlerSpec, request: RpcRequest) -> None:
        ctx = CallContext(session=session, core=self.core, request_id=None, method=request.method)
        try:
            await token.race(entry.handler(ctx, request.params))
        except CallCanceled:
            return
        except EngineError as exc:
            logger.warning("Notification {} failed in engine: {}", request.method, exc.message)
        except ProtocolError as exc:
            logger.debug("Notification {} rejected: {}", request.method, exc.message)
        except Exception:
            logger.exception("Notification {} failed", request.method)
