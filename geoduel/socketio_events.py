from flask import current_app, request
from flask_socketio import ConnectionRefusedError, emit

from geoduel import socketio
from geoduel.auth import decode_identity
from geoduel.services.match import get_coordinator
from geoduel.services.match.channel import SocketChannel
from geoduel.services.match.errors import (
    MatchError,
    MatchNotFoundOrInactive,
    NotAuthenticated,
    PersistenceError,
    UnknownMessageType,
)


def _coordinator():
    return get_coordinator(current_app)


def _get_sid() -> str:
    return request.sid  # type: ignore[attr-defined]


def _credential(auth):
    if isinstance(auth, dict) and auth.get('token'):
        return auth['token']
    return request.args.get('token')


def _current_channel() -> SocketChannel:
    channel = _coordinator().registry.channel_for_key(_get_sid())
    if channel is None:
        raise NotAuthenticated()
    return channel


def _match_id(data):
    raw = (data or {}).get('matchId')
    if isinstance(raw, bool):
        raise MatchNotFoundOrInactive()
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise MatchNotFoundOrInactive()


def _reply_error(exc: MatchError) -> None:
    emit('error', exc.to_payload())


def handle_connect(auth=None):
    try:
        identity = decode_identity(_credential(auth))
    except NotAuthenticated as exc:
        current_app.logger.info(f"[ws-reject] sid={_get_sid()} code={exc.close_code} reason={exc.message}")
        raise ConnectionRefusedError({'code': exc.close_code, 'message': exc.message})

    coordinator = _coordinator()
    channel = SocketChannel(socketio, _get_sid(), request.namespace, identity=identity)
    coordinator.registry.register(identity, channel)
    try:
        coordinator.gateway.touch_user(identity)
    except PersistenceError:
        current_app.logger.exception(f"[ws-connect] failed to update last_active_at user={identity}")
    current_app.logger.info(f"[ws-connect] user={identity} sid={channel.sid}")
    emit('connected', {'type': 'connected', 'userId': identity})


def handle_disconnect(*args):
    coordinator = _coordinator()
    channel = coordinator.registry.channel_for_key(_get_sid())
    if channel is None:
        return
    channel.close()
    coordinator.registry.unregister(channel.identity, channel)
    left = coordinator.disconnect(channel.identity, channel)
    current_app.logger.info(f"[ws-disconnect] user={channel.identity} sid={channel.sid} forfeited={left}")


def handle_join_match(data):
    try:
        channel = _current_channel()
        _coordinator().join(channel.identity, _match_id(data), channel)
    except MatchError as exc:
        _reply_error(exc)


def handle_submit_answer(data):
    data = data or {}
    try:
        channel = _current_channel()
        _coordinator().submit_answer(
            channel.identity,
            _match_id(data),
            data.get('questionIndex'),
            data.get('answer'),
            data.get('timeMs'),
        )
    except MatchError as exc:
        _reply_error(exc)


def handle_leave_match(data):
    try:
        channel = _current_channel()
        _coordinator().leave(channel.identity, _match_id(data))
    except MatchError as exc:
        _reply_error(exc)


def handle_ping(data=None):
    emit('pong', {'type': 'pong'})


_DISPATCH = {
    'join_match': handle_join_match,
    'submit_answer': handle_submit_answer,
    'leave_match': handle_leave_match,
    'ping': handle_ping,
}


def handle_message(data):
    """Single-event entry point: ``{type: ..., ...}`` frames."""
    message_type = (data or {}).get('type') if isinstance(data, dict) else None
    handler = _DISPATCH.get(message_type)
    if handler is None:
        _reply_error(UnknownMessageType())
        return
    handler(data)


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
        socketio.on_event('message', handle_message, namespace=namespace)
        for event, handler in _DISPATCH.items():
            socketio.on_event(event, handler, namespace=namespace)
