from __future__ import annotations

import importlib

ulid_module = importlib.import_module("ulid")


def new_lead_public_id() -> str:
    return f"lead_{ulid_module.new().str}"


def new_session_id() -> str:
    return f"frm_{ulid_module.new().str}"
