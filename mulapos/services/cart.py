from __future__ import annotations

import threading
from decimal import Decimal
from typing import Callable, List, Optional

from mulapos.core.money import money_sum
from mulapos.schemas.pos import CartItem, Product

Listener = Callable[[List[CartItem]], None]


class Cart:
    """
    Carrito de la venta en curso (en memoria).

    - Nunca guarda líneas con cantidad <= 0: se eliminan.
    - Todas las operaciones exigen sesión abierta (`require_session` lanza si no).
    - Tras cada mutación se avisa a los listeners con una copia de las líneas,
      sin soltar el lock: ningún cobro ni cierre se cuela entre el cambio y su aviso.
    """

    def __init__(self, require_session: Callable[[], object], lock: Optional[threading.RLock] = None):
        self._require_session = require_session
        self._lines: List[CartItem] = []
        self._listeners: List[Listener] = []
        # El terminal comparte aquí el lock de sesiones
        self.lock = lock or threading.RLock()

    def on_change(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _changed(self) -> None:
        snapshot = self.items()
        for fn in self._listeners:
            fn(snapshot)

    def items(self) -> List[CartItem]:
        with self.lock:
            return [line.model_copy() for line in self._lines]

    def is_empty(self) -> bool:
        with self.lock:
            return not self._lines

    def total(self) -> Decimal:
        with self.lock:
            return money_sum(line.line_total for line in self._lines)

    def add_product(self, product: Product) -> List[CartItem]:
        with self.lock:
            self._require_session()
            for i, line in enumerate(self._lines):
                if line.id == product.id:
                    self._lines[i] = line.model_copy(update={"quantity": line.quantity + 1})
                    break
            else:
                self._lines.append(CartItem(**product.model_dump(), quantity=1))
            self._changed()
            return self.items()

    def set_quantity(self, product_id: str, quantity: int) -> List[CartItem]:
        with self.lock:
            self._require_session()
            if quantity <= 0:
                self._lines = [line for line in self._lines if line.id != product_id]
            else:
                self._lines = [
                    line.model_copy(update={"quantity": quantity}) if line.id == product_id else line
                    for line in self._lines
                ]
            self._changed()
            return self.items()

    def clear(self) -> None:
        with self.lock:
            self._require_session()
            self.reset()

    def reset(self, notify: bool = True) -> None:
        """Vacía sin validar sesión (cierre de sesión / tras cobro)."""
        with self.lock:
            self._lines = []
            if notify:
                self._changed()
