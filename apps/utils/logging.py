import logging
import json
import datetime


class JSONFormatter(logging.Formatter):
    """
    Structured JSON log lines for the order/inventory core.
    Recursively scrubs sensitive keys (payment details, tokens) before output.
    """

    SENSITIVE_KEYS = {
        'password', 'token', 'access', 'refresh',
        'credit_card', 'card_number', 'cvv', 'secret',
        'authorization', 'signature',
    }

    # `extra=` keys copied onto the log line when present
    CONTEXT_KEYS = ('order_id', 'user_id', 'product_id', 'event', 'attempt')

    def _scrub(self, data):
        if isinstance(data, dict):
            return {
                k: '***REDACTED***' if str(k).lower() in self.SENSITIVE_KEYS else self._scrub(v)
                for k, v in data.items()
            }
        if isinstance(data, (list, tuple)):
            return [self._scrub(i) for i in data]
        return data

    def format(self, record):
        if isinstance(record.msg, dict):
            record.msg = self._scrub(record.msg)
        if isinstance(record.args, dict):
            record.args = self._scrub(record.args)

        log_record = {
            "ts": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            "lvl": record.levelname,
            "msg": record.getMessage(),
            "logger": record.name,
            "line": record.lineno,
        }

        for key in self.CONTEXT_KEYS:
            if hasattr(record, key):
                log_record[key] = self._scrub(getattr(record, key))

        if record.exc_info:
            log_record['exc'] = self.formatException(record.exc_info)

        return json.dumps(log_record, default=str)
