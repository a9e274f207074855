"""Request context dependencies.

The external auth collaborator forwards the caller as ``X-User-Id`` and
``X-User-Role`` headers. Each request builds its own ``RequestContext``.
"""

from fastapi import Depends, Header, HTTPException

from storefront.context import ActorRole, RequestContext


def request_context(
    x_user_id: str | None = Header(default=None),
    x_user_role: str = Header(default=ActorRole.CUSTOMER.value),
) -> RequestContext:
    try:
        role = ActorRole(x_user_role.title())
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown role {x_user_role!r}") from None
    return RequestContext(user_id=x_user_id, role=role)


def authenticated(context: RequestContext = Depends(request_context)) -> RequestContext:
    if not context.user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return context


def staff_only(context: RequestContext = Depends(authenticated)) -> RequestContext:
    if not context.is_staff:
        raise HTTPException(status_code=403, detail="Staff role required")
    return context
