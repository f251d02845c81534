from dataclasses import dataclass

import pytest

from bazaar.config import Settings
from bazaar.db import create_database
from bazaar.identity import Actor, Role, User, VerificationStatus
from bazaar.orders import Order, OrderDraft, OrderLine, ShippingAddress
from bazaar.payments import PaymentInit
from bazaar.products import NewProduct, Product, ProductStatus
from bazaar.services import Services

ADDRESS = ShippingAddress(
    full_name="Ama Owusu",
    phone="0241234567",
    address="12 Oxford St",
    city="Accra",
    region="Greater Accra",
)


class FlakyGateway:
    """Fails the first `failures` calls, then hands out fixed references."""

    provider = "paystack"

    def __init__(self, failures: int = 0) -> None:
        self.failures = failures
        self.calls = 0

    async def initialize(self, order) -> PaymentInit:
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionError("gateway down")
        return PaymentInit(
            order_id=order.id,
            reference=f"REF_{self.calls}",
            amount=order.total,
            currency=order.currency,
            email=order.buyer_email,
        )


@pytest.fixture
def settings() -> Settings:
    return Settings(env="test", database_url="sqlite+aiosqlite:///:memory:")


@pytest.fixture
async def session_factory():
    factory, engine = await create_database("sqlite+aiosqlite:///:memory:")
    yield factory
    await engine.dispose()


@pytest.fixture
async def file_session_factory(tmp_path):
    factory, engine = await create_database(f"sqlite+aiosqlite:///{tmp_path / 'bazaar.db'}")
    yield factory
    await engine.dispose()


@pytest.fixture
def gateway() -> FlakyGateway:
    return FlakyGateway()


@pytest.fixture
def services(settings, session_factory, gateway) -> Services:
    return Services.build(settings, session_factory, gateway=gateway)


@dataclass
class Market:
    """Seeding helpers over a Services container."""

    services: Services

    async def user(self, email: str, name: str = "Ama Owusu", role: Role = Role.BUYER, **kwargs) -> User:
        return (await self.services.users.create(email, name, role, **kwargs)).unwrap()

    async def vendor(self, email: str, *, verified: bool = True, business_name: str = "Kente House") -> User:
        vendor = await self.user(email, "Kwame Asante", Role.VENDOR, business_name=business_name)
        if verified:
            vendor = (await self.services.users.update(vendor.id, {
                "verification_status": VerificationStatus.VERIFIED.value,
                "store_status": "active",
            })).unwrap()
        return vendor

    async def product(
        self,
        vendor: User,
        *,
        name: str = "Kente Scarf",
        price: int = 5000,
        quantity: int = 10,
        track_quantity: bool = True,
        status: ProductStatus = ProductStatus.ACTIVE,
    ) -> Product:
        new = NewProduct(name=name, price=price, quantity=quantity, track_quantity=track_quantity)
        return (await self.services.products.create(new, vendor_id=vendor.id, status=status)).unwrap()

    async def stock(self, product: Product) -> int | None:
        return (await self.services.inventory.stock(product.id)).unwrap()

    async def order(self, buyer: User, *lines: tuple[Product, int]) -> Order:
        """Place an order straight through the store, bypassing the cart."""
        draft = OrderDraft(
            buyer=actor_for(buyer),
            lines=tuple(
                OrderLine(product.id, product.name, product.vendor_id, "Kente House", quantity, product.price)
                for product, quantity in lines
            ),
            shipping_address=ADDRESS,
        )
        return (await self.services.orders.place(draft)).unwrap()


def actor_for(user: User) -> Actor:
    return Actor(user_id=user.id, role=user.role, name=user.name, email=user.email)


@pytest.fixture
def market(services) -> Market:
    return Market(services)
