from __future__ import annotations

from typing import Annotated, Optional

from fastapi import Header

# x-user-id is set by the upstream authentication layer and trusted as-is.
UserIdHeader = Annotated[Optional[str], Header(alias="x-user-id")]
