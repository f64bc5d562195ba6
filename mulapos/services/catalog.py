from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from mulapos.core.errors import ProductNotFound
from mulapos.schemas.pos import Product

DEMO_PRODUCTS = [
    ("P001", "Laptop Computer", "899.99", "Electronics", "1234567890123"),
    ("P002", "Office Chair", "199.99", "Furniture", "1234567890124"),
    ("P003", "Wireless Mouse", "29.99", "Electronics", "1234567890125"),
    ("P004", "Standing Desk", "599.99", "Furniture", "1234567890126"),
    ("P005", "Monitor", "299.99", "Electronics", "1234567890127"),
    ("P006", "Keyboard", "79.99", "Electronics", "1234567890128"),
    ("P007", "Desk Lamp", "49.99", "Office", "1234567890129"),
    ("P008", "Notebook", "12.99", "Office", "1234567890130"),
]


class Catalog:
    def __init__(self, products: Optional[Iterable[Product]] = None):
        if products is None:
            products = [
                Product(id=pid, name=name, price=Decimal(price), category=cat, barcode=bc)
                for pid, name, price, cat, bc in DEMO_PRODUCTS
            ]
        self._by_id: Dict[str, Product] = {p.id: p for p in products}

    def all(self) -> List[Product]:
        return list(self._by_id.values())

    def get(self, product_id: str) -> Product:
        p = self._by_id.get(product_id)
        if p is None:
            raise ProductNotFound(f"Producto {product_id} no existe")
        return p

    def by_barcode(self, barcode: str) -> Product:
        for p in self._by_id.values():
            if p.barcode == barcode:
                return p
        raise ProductNotFound(f"Código {barcode} no existe")
