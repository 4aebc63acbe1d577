"""
Logging configuration for Cloud Run.

Configures Python logging to work with Google Cloud Logging.
In Cloud Run, logs are automatically collected from stdout/stderr
when formatted as structured JSON.

Order-level context (order id, slot, provider, upstream status) is passed
through ``extra={"json_fields": {...}}``; Cloud Logging turns it into the
structured payload and the local formatter prints it under the message.
"""

import json
import logging
import os
import sys

_logging_configured = False


class LocalFormatter(logging.Formatter):
    """Formatter that appends ``json_fields`` passed through ``extra``."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)

        json_fields = getattr(record, "json_fields", None)
        if json_fields:
            fields_str = json.dumps(json_fields, indent=2, default=str)
            message = f"{message}\n{fields_str}"

        return message


def service_labels(service_name: str) -> dict[str, str]:
    """Labels attached to every Cloud Logging entry of this process."""
    labels = {"service": service_name}
    revision = os.getenv("K_REVISION")
    if revision:
        labels["revision"] = revision
    return labels


def setup_logging(service_name: str = "buyback", level: int = logging.INFO):
    """
    Configure logging once per process.

    On Cloud Run (``K_SERVICE`` set) logs go through google-cloud-logging,
    labelled with the service name and revision. Locally a single stream
    handler is installed on the root logger.

    Args:
        service_name: Name of the service for log identification
        level: Root log level
    """
    global _logging_configured

    if _logging_configured:
        return

    if os.getenv("K_SERVICE"):
        _setup_cloud_logging(service_name, level)
    else:
        _setup_local_logging(service_name, level)

    _logging_configured = True


def _setup_cloud_logging(service_name: str, level: int):
    try:
        import google.cloud.logging
        from google.cloud.logging.handlers import setup_logging as attach_handler

        client = google.cloud.logging.Client()
        handler = client.get_default_handler(labels=service_labels(service_name))
        attach_handler(handler, log_level=level)

        logging.info("Cloud Logging configured for service: %s", service_name)
    except Exception as e:
        _setup_local_logging(service_name, level)
        logging.warning("Failed to setup Cloud Logging, using local logging: %s", e)


def _setup_local_logging(service_name: str, level: int):
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # One local handler per process
    if any(isinstance(h.formatter, LocalFormatter) for h in root_logger.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        LocalFormatter(
            f"%(asctime)s - {service_name} - %(name)s - %(levelname)s - %(message)s"
        )
    )
    root_logger.addHandler(handler)
