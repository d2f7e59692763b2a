# -*- coding: utf-8 -*-
"""Verdant Vista package.

Modules:
    crypto:        PBKDF2 key derivation and AES-GCM blobs.
    vault:         Session key holder; dataset load/save.
    backup:        Portable backup documents (ciphertext only).
    db:            SQLite slot store (async).
    models:        Journal entries, events, dataset.
    collaborators: Event recognition / mood retrieval boundary.
    logic:         App logic that composes the layers above.
    ui:            Textual-based UI (screens, modals, app).
    theme.css:     Textual CSS theme (loaded by ui.py).
"""

__version__ = "0.1.0"

__all__ = [
    "backup",
    "collaborators",
    "crypto",
    "db",
    "errors",
    "logic",
    "models",
    "ui",
    "vault",
]
