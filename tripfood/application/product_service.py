from typing import Any, Final

from ..domain.entities import Product
from ..domain.exceptions import BusinessRuleError, DuplicateError, NotFoundError
from ..domain.repositories import ConsumptionRepository, ProductRepository
from ..domain.types import ProductCategory, ProductType, ProductUnit
from ..logging_config import get_logger
from .validation import logged_validation

logger: Final = get_logger(__name__)


class ProductService:
    """Application service for the product catalog."""

    def __init__(self, products: ProductRepository, consumptions: ConsumptionRepository):
        self.products = products
        self.consumptions = consumptions

    async def create_product(
        self,
        *,
        name: str,
        category: ProductCategory | str,
        product_type: ProductType | str,
        unit: ProductUnit | str,
        default_quantity_per_person: float | None = None,
        notes: str | None = None,
    ) -> Product:
        with logged_validation("Product", "create"):
            product = Product.create(
                name=name,
                category=category,
                product_type=product_type,
                unit=unit,
                default_quantity_per_person=default_quantity_per_person,
                notes=notes,
            )

        if await self.products.exists_by_name(product.name):
            logger.warning(
                "Product creation failed - already exists", product_name=product.name
            )
            raise DuplicateError.for_field("Product", "name", product.name)

        await self.products.save(product)
        logger.info("Product created", product_id=product.id, product_name=product.name)
        return product

    async def get_product(self, product_id: str) -> Product:
        product = await self.products.find_by_id(product_id)
        if product is None:
            raise NotFoundError.for_entity("Product", product_id)
        return product

    async def list_products(self) -> list[Product]:
        return await self.products.find_all_ordered_by_name()

    async def update_product(self, product_id: str, **changes: Any) -> Product:
        name = changes.get("name")
        if isinstance(name, str) and await self.products.exists_by_name(
            name, exclude_id=product_id
        ):
            raise DuplicateError.for_field("Product", "name", name.strip())

        with logged_validation("Product", "update"):
            updated = await self.products.partial_update(product_id, changes)
        if updated is None:
            raise NotFoundError.for_entity("Product", product_id)
        return updated

    async def delete_product(self, product_id: str, force: bool = False) -> None:
        """Delete a product, refusing while consumptions reference it.

        Raises:
            NotFoundError: If the product does not exist
            BusinessRuleError: If consumptions exist and force is False
        """
        await self.get_product(product_id)

        usage = len(await self.consumptions.find_by_product_id(product_id))
        if usage and not force:
            raise BusinessRuleError(
                f"Cannot delete product used in {usage} consumption records. "
                "Use force=True to delete them as well.",
                {"product_id": product_id, "consumption_count": usage},
            )

        await self.consumptions.delete_by_product_id(product_id)
        await self.products.delete(product_id)
        logger.info("Product deleted", product_id=product_id, forced=force)
