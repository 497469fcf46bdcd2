# =============================================================================
# CEX.IO Plus WebSocket Client -- Logging
# =============================================================================

import logging

logger = logging.getLogger("cexplus_ws")
