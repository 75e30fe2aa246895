"""
Owner identity for request handlers.

Authentication happens upstream; the gateway forwards the resolved user id
in the X-Owner-Id header and every query is scoped to it.
"""
from fastapi import Header


def get_owner_id(
    x_owner_id: int = Header(..., alias="X-Owner-Id", ge=1, description="Resolved owner user id."),
) -> int:
    return x_owner_id
