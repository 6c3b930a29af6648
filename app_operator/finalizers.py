"""Finalizer marker helpers. All of them return copies; nothing is persisted here."""
from .models import AppResource


def has_marker(app: AppResource, marker: str) -> bool:
    return marker in app.finalizers


def with_marker_added(app: AppResource, marker: str) -> AppResource:
    updated = app.model_copy(deep=True)
    if marker not in updated.finalizers:
        updated.finalizers.append(marker)
    return updated


def with_marker_removed(app: AppResource, marker: str) -> AppResource:
    updated = app.model_copy(deep=True)
    updated.finalizers = [f for f in updated.finalizers if f != marker]
    return updated
