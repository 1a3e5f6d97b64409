"""Fail-fast support."""

import logging
from typing import Optional

from testpackage.core.coordinator import Cancellation
from testpackage.listeners.base import RunListener
from testpackage.storage.models import Failure, TestUnit

logger = logging.getLogger(__name__)


class FailFastController(RunListener):
    """Requests the run to abort as soon as the first test fails.

    The failing test still finishes and is reported; no further units are
    started.
    """

    def __init__(self, cancellation: Cancellation):
        self.cancellation = cancellation
        self.triggered_by: Optional[Failure] = None

    def on_test_failure(self, unit: TestUnit, failure: Failure) -> None:
        if self.triggered_by is not None:
            return
        self.triggered_by = failure
        logger.info("Fail-fast triggered by %s", unit.key)
        self.cancellation.request(f"fail-fast triggered by {unit.key}")
