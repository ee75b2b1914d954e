from __future__ import annotations

from fastapi import Header, Request

from labsight.services.store import ReportStore


def get_store(request: Request) -> ReportStore:
    return request.app.state.store


def get_user_id(x_user_id: str = Header(..., min_length=1)) -> str:
    """Owner of the reports being read or written.

    Authentication happens in front of this service; it only trusts the
    header it is handed.
    """
    return x_user_id.strip()
