#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Application entrypoint for Verdant Vista.

This file is intentionally minimal. It sets up file logging and boots the
Textual UI app.
"""
from __future__ import annotations

import asyncio
from verdantvista.logic import configure_logging
from verdantvista.ui import VerdantVistaApp


def main() -> None:
    """Run the Textual application."""
    configure_logging()
    asyncio.run(VerdantVistaApp().run_async())


if __name__ == "__main__":
    main()
