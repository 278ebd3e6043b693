"""Edunexia Backend.

Multi-tenant educational-institution platform core: portal access control
and enrollment payment orchestration.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"
