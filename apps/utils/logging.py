import logging
import json
import datetime


class JSONFormatter(logging.Formatter):
    """
    Production-safe JSON Formatter.
    Recursively scrubs sensitive keys from logs.
    """

    SENSITIVE_KEYS = {
        'password', 'token', 'access', 'refresh',
        'ticket', 'secret', 'authorization', 'key', 'signature',
    }

    def _scrub(self, data):
        if isinstance(data, dict):
            return {
                k: self._scrub(v) if str(k).lower() not in self.SENSITIVE_KEYS else '***REDACTED***'
                for k, v in data.items()
            }
        if isinstance(data, list):
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
            "path": record.pathname,
            "line": record.lineno,
        }

        # Contextual traceability
        for attr in ("order_id", "user_id", "store_id", "courier_id"):
            if hasattr(record, attr):
                log_record[attr] = str(getattr(record, attr))

        if record.exc_info:
            log_record['exc'] = self.formatException(record.exc_info)

        return json.dumps(log_record)
