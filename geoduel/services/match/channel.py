class SocketChannel:
    """One client's Socket.IO connection, addressed by its sid.

    Messages are emitted as an event named after their ``type``.
    """

    def __init__(self, socketio, sid, namespace, identity=None):
        self._socketio = socketio
        self.sid = sid
        self.namespace = namespace
        self.identity = identity
        self.is_open = True

    @property
    def key(self):
        return self.sid

    def send(self, message: dict) -> None:
        self._socketio.emit(message['type'], message, to=self.sid, namespace=self.namespace)

    def close(self) -> None:
        self.is_open = False

    def __repr__(self):
        return f"<SocketChannel sid={self.sid} user={self.identity} open={self.is_open}>"
