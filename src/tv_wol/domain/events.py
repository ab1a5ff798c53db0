from enum import Enum, auto


class ConnectionEvent(Enum):
    CONNECTED = auto()
    DISCONNECTED = auto()
