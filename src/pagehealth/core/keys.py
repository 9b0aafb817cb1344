"""Shared schema keys to avoid magic strings across report builders."""

from __future__ import annotations

# Check-result record keys
K_TEST = "test"
K_STATUS = "status"
K_MESSAGE = "message"
K_DETAILS = "details"
K_LINKS = "links"

# Link report keys
K_URL = "url"
K_WORKING = "working"
K_NOT_WORKING = "notWorking"
K_SUMMARY = "summary"
K_CHECKED_AT = "checked_at"
K_RESULTS = "results"

# Check-result statuses
STATUS_PASS = "pass"
STATUS_FAIL = "fail"
STATUS_WARNING = "warning"
