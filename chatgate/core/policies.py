"""Named degradation policies for store failures.

The two gate components deliberately degrade in opposite directions when the
quota store cannot be reached:

- Quota enforcement fails open: availability wins, the request is allowed and
  the decision carries a visible degradation marker.
- Human verification fails closed: strictness wins, a challenge is required
  unless the in-process cache remembers a recent verification.
"""

from __future__ import annotations

from enum import Enum


class FailurePolicy(str, Enum):
    FAIL_OPEN = "fail_open"
    FAIL_CLOSED = "fail_closed"
