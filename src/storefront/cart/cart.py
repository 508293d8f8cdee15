"""Cart aggregate — the shopper's in-progress, unpaid selection.

The cart lives only on the client. It is rebuilt from the persisted snapshot
at startup, mutated through CartStore, and cleared once an order exists for
it. Lines are keyed by product: adding a product that is already in the cart
bumps its quantity instead of adding a second line, and a line whose quantity
drops to zero is removed rather than kept at zero.
"""

from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String

from storefront.cart.events import CartCleared, CartLineAdded, CartLineRemoved, CartQuantityChanged
from storefront.cart.snapshot import CartLineSnapshot, CartSnapshot
from storefront.domain import storefront
from storefront.errors import ProductUnavailable


@storefront.entity(part_of="Cart")
class CartLine:
    product_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    unit_price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    available = Boolean(default=True)

    @property
    def subtotal(self) -> float:
        return round(self.unit_price * self.quantity, 2)


@storefront.aggregate
class Cart:
    lines = HasMany(CartLine)
    updated_at = DateTime()

    @invariant.post
    def product_appears_on_one_line_only(self):
        product_ids = [str(line.product_id) for line in self.lines]
        if len(product_ids) != len(set(product_ids)):
            raise ValidationError({"lines": ["A product can only appear on one cart line"]})

    # -------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------
    @classmethod
    def create(cls):
        return cls(updated_at=datetime.now(UTC))

    @classmethod
    def from_snapshot(cls, snapshot: CartSnapshot):
        """Rebuild a cart from a persisted snapshot without raising events."""
        cart = cls.create()
        for line in snapshot.lines:
            cart.add_lines(
                CartLine(
                    product_id=line.product_id,
                    name=line.name,
                    unit_price=line.unit_price,
                    quantity=line.quantity,
                    available=line.available,
                )
            )
        return cart

    # -------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------
    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def total(self) -> float:
        return round(sum(line.unit_price * line.quantity for line in self.lines), 2)

    def line_for(self, product_id):
        return next((line for line in self.lines if str(line.product_id) == str(product_id)), None)

    def to_snapshot(self) -> CartSnapshot:
        return CartSnapshot(
            lines=tuple(
                CartLineSnapshot(
                    product_id=str(line.product_id),
                    name=line.name,
                    unit_price=line.unit_price,
                    quantity=line.quantity,
                    available=line.available,
                )
                for line in self.lines
            )
        )

    # -------------------------------------------------------------------
    # Line management
    # -------------------------------------------------------------------
    def add_item(self, product_id, name, unit_price, available=True, quantity=1):
        """Add a product, or bump the quantity of its existing line."""
        if not available:
            raise ProductUnavailable(str(product_id), name)
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity to add must be at least 1"]})

        existing = self.line_for(product_id)
        if existing:
            existing.quantity += quantity
            new_quantity = existing.quantity
        else:
            self.add_lines(
                CartLine(
                    product_id=str(product_id),
                    name=name,
                    unit_price=unit_price,
                    quantity=quantity,
                    available=available,
                )
            )
            new_quantity = quantity

        self.updated_at = datetime.now(UTC)
        self.raise_(
            CartLineAdded(
                cart_id=str(self.id),
                product_id=str(product_id),
                quantity=quantity,
                new_quantity=new_quantity,
            )
        )

    def remove_item(self, product_id) -> bool:
        """Remove the line for ``product_id``. Returns False if there was none."""
        line = self.line_for(product_id)
        if line is None:
            return False

        self.remove_lines(line)
        self.updated_at = datetime.now(UTC)
        self.raise_(CartLineRemoved(cart_id=str(self.id), product_id=str(product_id)))
        return True

    def set_quantity(self, product_id, quantity) -> bool:
        """Set a line's quantity; zero or less removes the line. Returns False if nothing changed."""
        if quantity <= 0:
            return self.remove_item(product_id)

        line = self.line_for(product_id)
        if line is None or line.quantity == quantity:
            return False

        previous_quantity = line.quantity
        line.quantity = quantity
        self.updated_at = datetime.now(UTC)
        self.raise_(
            CartQuantityChanged(
                cart_id=str(self.id),
                product_id=str(product_id),
                previous_quantity=previous_quantity,
                new_quantity=quantity,
            )
        )
        return True

    def clear(self, reason="user_request") -> bool:
        """Remove every line at once. Returns False if the cart was already empty."""
        lines = list(self.lines)
        if not lines:
            return False

        for line in lines:
            self.remove_lines(line)
        self.updated_at = datetime.now(UTC)
        self.raise_(CartCleared(cart_id=str(self.id), reason=reason, lines_removed=len(lines)))
        return True
