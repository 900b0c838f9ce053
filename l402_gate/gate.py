"""
Main paywall factory.

create_gate() creates a gate instance that can be used as a FastAPI
dependency or decorator to put API endpoints behind Lightning payments.
"""

from __future__ import annotations

import functools
import inspect
from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .lnd import LndClient, LndConfig
from .middleware import L402HTTPException, L402Middleware


async def _l402_exception_handler(request: Request, exc: L402HTTPException) -> JSONResponse:
    return JSONResponse(exc.detail, status_code=exc.status_code, headers=exc.headers)


class L402Gate:
    """
    Paywall instance.

    Created by create_gate(). Used as a FastAPI dependency factory or decorator.

    Usage as dependency:
        gate = create_gate(lnd=LndConfig(...))
        gate.install(app)

        @app.get("/api/data")
        async def data(proof=Depends(gate(price=100))):
            return {"data": "...", "hash": proof.payment_hash}

    Usage as decorator:
        @app.get("/api/data")
        @gate.require(price=100)
        async def data(request: Request):
            return {"data": "..."}
    """

    def __init__(self, config: Dict[str, Any]):
        self._config = config
        self.backend = config["backend"]

    def __call__(self, **route_opts: Any) -> L402Middleware:
        """
        Create a FastAPI dependency for a route.

        Args:
            price: Fixed price in satoshis.
            price_fn: Dynamic pricing callable (request) -> sats, sync or async.
            description: Invoice memo.

        Returns:
            L402Middleware instance usable with Depends().
        """
        return L402Middleware(self._config, route_opts)

    def require(self, **route_opts: Any) -> Callable:
        """
        Decorator that requires payment before executing the handler.

        The handler must accept a 'request: Request' parameter. The Proof is
        injected as a 'proof' keyword argument if the handler accepts it.
        """

        def decorator(func: Callable) -> Callable:
            middleware = L402Middleware(self._config, route_opts)
            wants_proof = "proof" in inspect.signature(func).parameters

            @functools.wraps(func)
            async def wrapper(*args: Any, **kwargs: Any) -> Any:
                request = kwargs.get("request")
                if request is None:
                    for arg in args:
                        if isinstance(arg, Request):
                            request = arg
                            break

                if request is None:
                    raise RuntimeError(
                        "gate.require() decorator needs a 'request: Request' parameter "
                        "in the route handler"
                    )

                proof = await middleware(request)
                if wants_proof:
                    kwargs["proof"] = proof

                return await func(*args, **kwargs)

            if wants_proof:
                # Hide 'proof' from FastAPI so it isn't read as a query parameter.
                sig = inspect.signature(func)
                wrapper.__signature__ = sig.replace(
                    parameters=[p for p in sig.parameters.values() if p.name != "proof"]
                )

            return wrapper

        return decorator

    def install(self, app: FastAPI) -> FastAPI:
        """
        Render paywall responses with their plain JSON body.

        Without this, FastAPI wraps the body as {"detail": {...}}; l402-gate
        clients accept both.
        """
        app.add_exception_handler(L402HTTPException, _l402_exception_handler)
        return app


def create_gate(
    lnd: Optional[LndConfig] = None,
    backend: Optional[Any] = None,
    default_price: Optional[int] = None,
    bind_resource: bool = True,
) -> L402Gate:
    """
    Create a gate for putting API endpoints behind Lightning payments.

    Args:
        lnd: LND node connection, used to create invoices.
        backend: Pre-created backend instance (must have create_invoice method).
        default_price: Price in sats for routes that don't set one.
        bind_resource: Reject tokens presented on a path other than the one
            they were issued for (default True).

    Returns:
        L402Gate instance.
    """
    backend_instance: Any
    if backend is not None:
        if not hasattr(backend, "create_invoice"):
            raise ValueError("l402-gate: backend must have a create_invoice() method")
        backend_instance = backend
    elif lnd is not None:
        backend_instance = LndClient(lnd)
    else:
        raise ValueError("l402-gate: lnd or backend is required")

    config = {
        "backend": backend_instance,
        "default_price": default_price,
        "bind_resource": bind_resource,
    }

    return L402Gate(config)


def l402(
    lnd: Optional[LndConfig] = None,
    price: Optional[int] = None,
    description: Optional[str] = None,
    price_fn: Optional[Callable] = None,
    backend: Optional[Any] = None,
    bind_resource: bool = True,
) -> L402Middleware:
    """
    One-route shortcut: create_gate(...)(price=..., ...).

    Usage:
        @app.get("/api/joke")
        async def joke(proof=Depends(l402(lnd=node, price=10))):
            ...
    """
    gate = create_gate(lnd=lnd, backend=backend, bind_resource=bind_resource)
    return gate(price=price, description=description, price_fn=price_fn)
