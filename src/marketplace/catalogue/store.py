"""Catalog store port and its repository-backed adapter.

The order subsystem treats the catalogue as an external collaborator with a
narrow contract: read a product, and move stock or sold counts. Stock
decrements are conditional (never below zero) and version-checked, so
concurrent checkouts on the last unit cannot both succeed.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from protean.utils.globals import current_domain

from marketplace.catalogue.product import Product


@dataclass(frozen=True)
class ProductSnapshot:
    """Read-only view of a product at the moment it was read."""

    id: str
    name: str
    price: float
    stock: int
    sold_count: int
    is_active: bool
    seller_id: str
    image_url: str | None = None
    weight_kg: float = 0.0


class CatalogStore(ABC):
    """Abstract catalogue interface consumed by checkout and flash sales."""

    @abstractmethod
    def get_product(self, product_id: str) -> ProductSnapshot:
        """Return the product, raising ObjectNotFoundError if it does not exist."""
        ...

    @abstractmethod
    def decrement_stock(self, product_id: str, quantity: int) -> None:
        """Atomically remove ``quantity`` units, raising InsufficientStock if short."""
        ...

    @abstractmethod
    def increment_stock(self, product_id: str, quantity: int) -> None: ...

    @abstractmethod
    def increment_sold_count(self, product_id: str, quantity: int) -> None: ...

    @abstractmethod
    def decrement_sold_count(self, product_id: str, quantity: int) -> None: ...

    @abstractmethod
    def product_ids_for_seller(self, seller_id: str) -> set[str]:
        """Ids of every product listed by ``seller_id``."""
        ...


def _snapshot(product: Product) -> ProductSnapshot:
    return ProductSnapshot(
        id=str(product.id),
        name=product.name,
        price=product.price,
        stock=product.stock,
        sold_count=product.sold_count or 0,
        is_active=bool(product.is_active),
        seller_id=str(product.seller_id),
        image_url=product.image_url,
        weight_kg=product.weight_kg or 0.0,
    )


class RepositoryCatalogStore(CatalogStore):
    """Catalog store backed by the Product aggregate repository.

    Each mutation is a load/modify/save of a versioned aggregate. Inside a
    command handler the save joins the handler's Unit of Work and is checked
    at commit; on its own the save commits immediately and a stale version
    raises ExpectedVersionError instead of overwriting a concurrent change.
    """

    def _repo(self):
        return current_domain.repository_for(Product)

    def get_product(self, product_id: str) -> ProductSnapshot:
        return _snapshot(self._repo().get(product_id))

    def decrement_stock(self, product_id: str, quantity: int) -> None:
        repo = self._repo()
        product = repo.get(product_id)
        product.withdraw_stock(quantity)
        repo.add(product)

    def increment_stock(self, product_id: str, quantity: int) -> None:
        repo = self._repo()
        product = repo.get(product_id)
        product.return_stock(quantity)
        repo.add(product)

    def increment_sold_count(self, product_id: str, quantity: int) -> None:
        repo = self._repo()
        product = repo.get(product_id)
        product.record_sale(quantity)
        repo.add(product)

    def decrement_sold_count(self, product_id: str, quantity: int) -> None:
        repo = self._repo()
        product = repo.get(product_id)
        product.reverse_sale(quantity)
        repo.add(product)

    def product_ids_for_seller(self, seller_id: str) -> set[str]:
        products = self._repo()._dao.query.filter(seller_id=str(seller_id)).limit(None).all().items
        return {str(product.id) for product in products}
