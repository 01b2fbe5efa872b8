from __future__ import annotations

import json
import logging
import unittest
from decimal import Decimal

from app.logging_utils import JsonFormatter


class JsonFormatterTests(unittest.TestCase):
    def _record(self, **extra) -> logging.LogRecord:  # type: ignore[no-untyped-def]
        record = logging.LogRecord("app.request", logging.INFO, __file__, 1, "request_complete", (), None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_extra_fields_are_flattened_into_payload(self) -> None:
        formatter = JsonFormatter(service="TimeTracking")
        payload = json.loads(formatter.format(self._record(request_id="abc", hours=Decimal("7.50"))))

        self.assertEqual(payload["message"], "request_complete")
        self.assertEqual(payload["logger"], "app.request")
        self.assertEqual(payload["service"], "TimeTracking")
        self.assertEqual(payload["request_id"], "abc")
        self.assertEqual(payload["hours"], "7.50")
        self.assertNotIn("pathname", payload)
        self.assertNotIn("lineno", payload)

    def test_service_is_omitted_when_not_configured(self) -> None:
        payload = json.loads(JsonFormatter().format(self._record()))

        self.assertNotIn("service", payload)
        self.assertEqual(payload["level"], "INFO")


if __name__ == "__main__":
    unittest.main()
