from .sync_events import register_sync_events
from .player_events import register_player_events
from .host_events import register_host_events

def register_sockets(socketio):
    register_sync_events(socketio)
    register_player_events(socketio)
    register_host_events(socketio)
