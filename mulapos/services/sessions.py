"""
Ciclo de vida de la sesión de caja: none -> opened -> closed (terminal).

Fuente de verdad en el almacenamiento compartido:
  sessions         historial completo (incluye la abierta)
  current-session  la sesión abierta; ausente si no hay
  cash-movements   entradas/salidas de efectivo (sólo se agregan)
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
import logging
import threading
from typing import Callable, Dict, List, Optional
import uuid

from mulapos.core.config import Settings
from mulapos.core.errors import (
    InvalidCashMovement,
    InvalidPaymentMethod,
    NoActiveSession,
    SessionAlreadyOpen,
)
from mulapos.core.money import ZERO, money, money_sum
from mulapos.schemas.pos import CashMovement, DeviceConfig, PosSession
from mulapos.services import keys
from mulapos.services.storage import SharedStorage, StorageTxn

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12].upper()}"


class SessionManager:
    def __init__(self, storage: SharedStorage, settings: Settings, clock: Clock = utcnow):
        self.storage = storage
        self.settings = settings
        self.clock = clock
        # Serializa el compare-and-set de "¿hay sesión abierta?"
        self.lock = threading.RLock()

    # ---------- lecturas ----------
    def _active(self, tx: StorageTxn) -> Optional[PosSession]:
        raw = tx.get_json(keys.CURRENT_SESSION)
        if not raw:
            return None
        s = PosSession.model_validate(raw)
        return s if s.status == "opened" else None

    def _require_active(self, tx: StorageTxn) -> PosSession:
        s = self._active(tx)
        if s is None:
            raise NoActiveSession()
        return s

    def active(self) -> Optional[PosSession]:
        with self.storage.transaction() as tx:
            return self._active(tx)

    def require_active(self) -> PosSession:
        with self.storage.transaction() as tx:
            return self._require_active(tx)

    def history(self) -> List[PosSession]:
        raw = self.storage.get_json(keys.SESSIONS, [])
        return [PosSession.model_validate(r) for r in raw]

    def movements(self, session_id: Optional[str] = None) -> List[CashMovement]:
        raw = self.storage.get_json(keys.CASH_MOVEMENTS, [])
        items = [CashMovement.model_validate(r) for r in raw]
        if session_id is not None:
            items = [m for m in items if m.session_id == session_id]
        return items

    # ---------- escritura ----------
    def _save(self, tx: StorageTxn, session: PosSession) -> None:
        history = tx.get_json(keys.SESSIONS, [])
        wire = session.wire()
        for i, row in enumerate(history):
            if row.get("id") == session.id:
                history[i] = wire
                break
        else:
            history.append(wire)
        tx.set_json(keys.SESSIONS, history)
        if session.status == "opened":
            tx.set_json(keys.CURRENT_SESSION, wire)
        else:
            tx.remove(keys.CURRENT_SESSION)

    def start_session(self, opening_balance) -> PosSession:
        with self.lock, self.storage.transaction() as tx:
            if self._active(tx) is not None:
                raise SessionAlreadyOpen()
            if any(r.get("status") == "opened" for r in tx.get_json(keys.SESSIONS, [])):
                raise SessionAlreadyOpen()

            now = self.clock()
            session = PosSession(
                id=new_id("POS"),
                name=f"POS Session {now.date().isoformat()}",
                started_at=now,
                status="opened",
                opening_balance=money(opening_balance),
                cashier=self.settings.cashier_name,
                config=DeviceConfig(
                    name=self.settings.device_name,
                    cash_control=self.settings.cash_control,
                    receipt_printer=self.settings.receipt_printer,
                    barcode_scanner=self.settings.barcode_scanner,
                ),
            )
            self._save(tx, session)
        logger.info("session %s opened (opening balance %s)", session.id, session.opening_balance)
        return session

    def close_session(self, closing_balance) -> PosSession:
        with self.lock, self.storage.transaction() as tx:
            session = self._require_active(tx)
            session = session.model_copy(
                update={
                    "status": "closed",
                    "ended_at": self.clock(),
                    "closing_balance": money(closing_balance),
                }
            )
            self._save(tx, session)
        logger.info("session %s closed (closing balance %s)", session.id, session.closing_balance)
        return session

    def record_cash_movement(self, direction: str, amount, reason: str) -> CashMovement:
        amount = money(amount)
        if direction not in ("in", "out") or amount <= ZERO or not (reason or "").strip():
            raise InvalidCashMovement()

        with self.storage.transaction() as tx:
            session = self._require_active(tx)
            mv = CashMovement(
                id=new_id("CM"),
                session_id=session.id,
                type=direction,
                amount=amount,
                reason=reason.strip(),
                timestamp=self.clock(),
            )
            log = tx.get_json(keys.CASH_MOVEMENTS, [])
            log.append(mv.wire())
            tx.set_json(keys.CASH_MOVEMENTS, log)
            # Las salidas sólo quedan en el log; el agregado no se toca
            if direction == "in":
                session = session.model_copy(update={"total_cash": money(session.total_cash + amount)})
                self._save(tx, session)
        logger.info("session %s cash %s %s (%s)", session.id, direction, amount, mv.reason)
        return mv

    def record_sale_payment(self, total, method: str) -> PosSession:
        total = money(total)
        if method not in self.settings.payment_methods:
            raise InvalidPaymentMethod(f"Método {method!r} no habilitado")

        with self.storage.transaction() as tx:
            session = self._require_active(tx)
            update: Dict[str, object] = {
                "total_sales": money(session.total_sales + total),
                "total_transactions": session.total_transactions + 1,
            }
            if method == "cash":
                update["total_cash"] = money(session.total_cash + total)
            else:
                update["total_card"] = money(session.total_card + total)
            session = session.model_copy(update=update)
            self._save(tx, session)
        return session

    # ---------- derivados ----------
    def current_cash_balance(self) -> Decimal:
        """
        Saldo de caja calculado al vuelo (nunca se guarda):
        apertura + totalCash (cobros en efectivo y entradas) - salidas de esta sesión.
        """
        session = self.require_active()
        outs = money_sum(m.amount for m in self.movements(session.id) if m.type == "out")
        return money(session.opening_balance + session.total_cash - outs)

    def daily_summary(self, day: Optional[date] = None) -> Dict[str, object]:
        day = day or self.clock().date()
        todays = [s for s in self.history() if s.started_at.date() == day]
        return {
            "date": day.isoformat(),
            "sessions": len(todays),
            "total_sales": money_sum(s.total_sales for s in todays),
            "total_transactions": sum(s.total_transactions for s in todays),
        }
