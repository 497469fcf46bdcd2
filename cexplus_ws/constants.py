# =============================================================================
# CEX.IO Plus WebSocket Client -- Protocol Constants
# =============================================================================

# -- Endpoints ----------------------------------------------------------------

DEFAULT_HOST = "wss://api.plus.cex.io/"
PRIVATE_PATH = "ws"
PUBLIC_PATH = "ws-public"

# -- Timing (seconds) --------------------------------------------------------

REPLY_TIMEOUT = 30.0
CONNECTION_TIMEOUT = 10.0
CLOSE_TIMEOUT = 5.0

# -- Messages ------------------------------------------------------------------

MAX_MESSAGE_SIZE = 2**22  # 4 MB, order book snapshots can be large

# -- Reserved event names ------------------------------------------------------

EVENT_CONNECTED = "connected"
EVENT_DISCONNECTED = "disconnected"
EVENT_AUTH = "auth"
EVENT_PING = "ping"
EVENT_PONG = "pong"

RESERVED_EVENTS = frozenset({EVENT_CONNECTED, EVENT_DISCONNECTED, EVENT_AUTH})

AUTH_OID = "auth"

# -- Reply status --------------------------------------------------------------

REPLY_OK = "ok"

# -- Cancellation reasons ------------------------------------------------------

REASON_TIMEOUT = "request timeout"
REASON_SERVER_DISCONNECTED = "disconnected from server"
REASON_CLIENT_DISCONNECT = "Client disconnect"
REASON_CONNECTION_CLOSED = "connection closed"
REASON_SEND_FAILED = "send failed"

# -- WebSocket close codes -----------------------------------------------------

WS_CLOSE_NORMAL = 1000
