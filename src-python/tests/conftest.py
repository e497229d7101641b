"""Test session setup: keep persisted settings out of the user's data dir."""

from __future__ import annotations

import os
import tempfile

os.environ.setdefault("SCANSHIELD_DATA_DIR", tempfile.mkdtemp(prefix="scanshield-test-"))
