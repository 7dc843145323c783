from __future__ import annotations

from ..extensions import db
from mercado.time_utils import to_utc_z
from mercado.validation import money_str


class Product(db.Model):
    """
    Product master data with on-hand stock.

    MULTI-TENANT: Products are scoped to a supermarket via supermarket_id.

    INVARIANTS:
    - price_cents >= 0 and stock >= 0 after every operation; sale-driven
      decrements and bulk updates clamp at zero instead of raising
    - low_stock_threshold drives replenishment alerts (stock < threshold)
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_supermarket_name", "supermarket_id", "name"),
        db.UniqueConstraint("supermarket_id", "barcode", name="uq_products_supermarket_barcode"),
        db.CheckConstraint("price_cents >= 0", name="ck_products_price_non_negative"),
        db.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    supermarket_id = db.Column(db.Integer, db.ForeignKey("supermarkets.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)

    # Authoritative storage in cents (clients may send "price" in reais)
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    stock = db.Column(db.Integer, nullable=False, default=0)

    image_url = db.Column(db.Text, nullable=True)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=10)

    # Scanner code; when absent the scanner matches the product id
    barcode = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    supermarket = db.relationship("Supermarket", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} supermarket_id={self.supermarket_id}>"

    @property
    def is_low_stock(self) -> bool:
        return self.stock < self.low_stock_threshold

    def snapshot(self) -> dict:
        """Copy of the fields a cart line and a sale keep by value."""
        return {
            "id": self.id,
            "name": self.name,
            "price_cents": self.price_cents,
            "image_url": self.image_url,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supermarket_id": self.supermarket_id,
            "name": self.name,
            "price_cents": self.price_cents,
            "price": money_str(self.price_cents),
            "stock": self.stock,
            "image_url": self.image_url,
            "low_stock_threshold": self.low_stock_threshold,
            "is_low_stock": self.is_low_stock,
            "barcode": self.barcode,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
