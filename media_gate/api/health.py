import platform
import time
from typing import Any, Dict

from media_gate.config import get_settings
from media_gate.metrics import BUILD_VERSION, GIT_SHA


async def health() -> Dict[str, Any]:
    settings = get_settings()
    return {
        "status": "ok",
        "version": BUILD_VERSION,
        "git": GIT_SHA,
        "ts": time.time(),
        "env": {
            "app_env": settings.app_env,
            "r2": settings.r2_configured,
            "stream": settings.stream_configured,
            "stream_local_signing": settings.stream_local_signing,
        },
        "runtime": {
            "python": platform.python_version(),
        },
    }
