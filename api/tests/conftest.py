from __future__ import annotations

import os

# Applied before campus_connect.main is imported by any test module.
os.environ.setdefault("CC_ENVIRONMENT", "test")
os.environ.setdefault("CC_OTEL_ENABLED", "false")
os.environ.setdefault("CC_RATE_LIMIT_ENABLED", "false")
