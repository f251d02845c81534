"""
Services — one wiring point for stores and services.

    session_factory, engine = await create_database(settings.database_url)
    services = Services.build(settings, session_factory)
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bazaar.admin import UserAdmin
from bazaar.audit import AuditLog
from bazaar.cart import CartStore
from bazaar.checkout import CheckoutDeps, CheckoutService
from bazaar.config import Settings
from bazaar.identity import IdentityResolver, SessionStore, UserStore
from bazaar.inventory import InventoryLedger
from bazaar.orders import OrderService, OrderStore
from bazaar.payments import PaymentGateway, PaymentService, PaymentWebhook
from bazaar.policy import Policy
from bazaar.products import ProductService, ProductStore
from bazaar.verification import KycProvider, KycService


@dataclass(frozen=True, slots=True)
class Services:
    settings: Settings
    users: UserStore
    sessions: SessionStore
    identity: IdentityResolver
    carts: CartStore
    products: ProductStore
    inventory: InventoryLedger
    orders: OrderStore
    audit: AuditLog
    policy: Policy
    catalogue: ProductService
    order_service: OrderService
    payments: PaymentService
    payment_webhook: PaymentWebhook
    checkout: CheckoutService
    kyc: KycService
    user_admin: UserAdmin

    @classmethod
    def build(
        cls,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        gateway: PaymentGateway | None = None,
        kyc_provider: KycProvider | None = None,
    ) -> Services:
        users = UserStore(session_factory)
        sessions = SessionStore(session_factory, ttl=settings.session_ttl)
        carts = CartStore(session_factory)
        products = ProductStore(session_factory)
        orders = OrderStore(session_factory)
        audit = AuditLog(session_factory)
        policy = Policy()
        payments = PaymentService(orders, audit, policy, gateway)
        return cls(
            settings=settings,
            users=users,
            sessions=sessions,
            identity=IdentityResolver(sessions),
            carts=carts,
            products=products,
            inventory=InventoryLedger(session_factory),
            orders=orders,
            audit=audit,
            policy=policy,
            catalogue=ProductService(products, users, audit, policy),
            order_service=OrderService(orders, users, audit, policy),
            payments=payments,
            payment_webhook=PaymentWebhook(
                orders,
                audit,
                secret=settings.paystack_secret,
                require_signature=settings.is_production,
            ),
            checkout=CheckoutService(
                CheckoutDeps(carts, products, users, orders, payments, currency=settings.currency),
                audit,
                policy,
            ),
            kyc=KycService(
                users,
                audit,
                kyc_provider,
                partner_id=settings.kyc_partner_id,
                api_key=settings.kyc_api_key,
                require_signature=settings.is_production,
            ),
            user_admin=UserAdmin(users, sessions, audit, policy),
        )


__all__ = ("Services",)
