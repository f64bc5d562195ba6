"""
Idempotency-Key para el cobro.

El mismo key + mismo body devuelve la respuesta guardada (replay) y no vuelve a
cobrar. El mismo key con otro body se rechaza con 422. Sólo se guardan las
respuestas 200 que traen el id de la venta.
"""
import asyncio
import hashlib
import json
import logging
import time
from typing import Dict, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

logger = logging.getLogger(__name__)

# Ruta -> clave que indica éxito en el JSON de respuesta
GUARDED = {
    "/pos/pay": "sale_id",
}
HEADERS = ("Idempotency-Key", "X-Idempotency-Key")


def _fingerprint(body: bytes) -> str:
    return hashlib.sha256(body or b"").hexdigest()


class _Entry:
    __slots__ = ("status", "headers", "media_type", "body", "fingerprint", "exp")

    def __init__(self, status, headers, media_type, body, fingerprint, exp):
        self.status = status
        self.headers = headers
        self.media_type = media_type
        self.body = body
        self.fingerprint = fingerprint
        self.exp = exp

    def replay(self) -> Response:
        body = self.body
        js = json.loads(body.decode("utf-8"))
        if isinstance(js, dict):
            js.setdefault("replay", True)
            body = json.dumps(js).encode("utf-8")
        headers = {k: v for k, v in self.headers.items() if k.lower() != "content-length"}
        headers["Idempotent-Replay"] = "true"
        return Response(content=body, status_code=self.status, media_type=self.media_type, headers=headers)


class _Store:
    """Cache TTL + un lock por key (se descarta cuando nadie lo espera)."""

    def __init__(self, ttl: float, max_entries: int = 2048):
        self.ttl = ttl
        self.max_entries = max_entries
        self._entries: Dict[str, _Entry] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiting: Dict[str, int] = {}
        self._guard = asyncio.Lock()

    def get(self, key: str) -> Optional[_Entry]:
        entry = self._entries.get(key)
        if entry is not None and entry.exp < time.time():
            self._entries.pop(key, None)
            return None
        return entry

    def put(self, key: str, entry: _Entry) -> None:
        if key not in self._entries and len(self._entries) >= self.max_entries:
            self._entries.pop(next(iter(self._entries)))
        self._entries[key] = entry

    async def acquire(self, key: str) -> asyncio.Lock:
        async with self._guard:
            lock = self._locks.setdefault(key, asyncio.Lock())
            self._waiting[key] = self._waiting.get(key, 0) + 1
        await lock.acquire()
        return lock

    async def release(self, key: str, lock: asyncio.Lock) -> None:
        lock.release()
        async with self._guard:
            self._waiting[key] -= 1
            if self._waiting[key] == 0:
                self._waiting.pop(key, None)
                self._locks.pop(key, None)


def _key_reused() -> Response:
    return JSONResponse(
        status_code=422,
        content={
            "detail": "IDEMPOTENCY_KEY_REUSED",
            "message": "Idempotency-Key already used with a different request",
        },
    )


class PayIdempotency(BaseHTTPMiddleware):
    def __init__(self, app, ttl: float = 3600):
        super().__init__(app)
        self.store = _Store(ttl=ttl)

    async def dispatch(self, request, call_next):
        success_key = GUARDED.get(request.url.path)
        if request.method != "POST" or not success_key:
            return await call_next(request)

        idem = next((request.headers[h] for h in HEADERS if request.headers.get(h)), None)
        if not idem:
            return await call_next(request)

        cache_key = f"POST:{request.url.path}:{idem}"
        fingerprint = _fingerprint(await request.body())

        lock = await self.store.acquire(cache_key)
        try:
            cached = self.store.get(cache_key)
            if cached is not None:
                if cached.fingerprint != fingerprint:
                    logger.warning("idempotency key %s reused with a different body", idem)
                    return _key_reused()
                return cached.replay()

            response = await call_next(request)
            body = b""
            async for chunk in response.body_iterator:
                body += chunk
            headers = {k: v for k, v in response.headers.items() if k.lower() != "content-length"}
            fresh = Response(
                content=body,
                status_code=response.status_code,
                media_type=response.media_type,
                headers=headers,
            )

            if response.status_code == 200:
                try:
                    js = json.loads(body.decode("utf-8"))
                except ValueError:
                    js = None
                if isinstance(js, dict) and success_key in js:
                    self.store.put(
                        cache_key,
                        _Entry(
                            status=fresh.status_code,
                            headers=dict(fresh.headers),
                            media_type=fresh.media_type,
                            body=body,
                            fingerprint=fingerprint,
                            exp=time.time() + self.store.ttl,
                        ),
                    )
            return fresh
        finally:
            await self.store.release(cache_key, lock)


def install_idempotency(app, ttl: float = 3600):
    app.add_middleware(PayIdempotency, ttl=ttl)
