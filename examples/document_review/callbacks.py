"""Callbacks referenced from flow.yaml and legal.yaml by dotted path."""

from __future__ import annotations

import threading

from circulator.logger import get_logger

logger = get_logger("document_review")

_LOCK = threading.Lock()


def with_document_lock(doc, transition):
    with _LOCK:
        transition()


def log_missing(doc, attribute, action):
    logger.warning("%s: no '%s' from %r, ignoring", doc.title, action, getattr(doc, attribute))


def stamp_submitted(doc, *args, **kwargs):
    doc.history.append("submitted")


def after_legal(doc, verdict="ok"):
    # legal sends the document back to review or all the way to the author
    return "submitted" if verdict == "ok" else "draft"
