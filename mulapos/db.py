from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

# Base para modelos (lo importa mulapos.main)
Base = declarative_base()


def _is_memory(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url


def build_engine(url: str) -> Engine:
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)

    kwargs = {"connect_args": {"check_same_thread": False, "timeout": 60}}
    if _is_memory(url):
        # Una sola conexión compartida: si no, cada conexión ve una BD vacía.
        # Sin aislamiento entre hilos: sólo para pruebas de un hilo
        kwargs["poolclass"] = StaticPool
    engine = create_engine(url, **kwargs)

    # PRAGMAs por conexión
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, _):
        cur = dbapi_conn.cursor()
        try:
            if not _is_memory(url):
                cur.execute("PRAGMA journal_mode=WAL;")
            cur.execute("PRAGMA busy_timeout=60000;")
            cur.execute("PRAGMA synchronous=NORMAL;")
        finally:
            cur.close()

    return engine


def build_session_factory(engine: Engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine) -> None:
    # IMPORTA MODELOS antes de create_all
    from .models import storage as _storage_models  # noqa: F401

    Base.metadata.create_all(bind=engine)
