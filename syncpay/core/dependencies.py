from typing import AsyncGenerator, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from syncpay.core.config import GatewayConfig, settings
from syncpay.core.database import db_manager
from syncpay.core.exceptions import ConfigurationError, UnauthorizedError
from syncpay.models import user_model
from syncpay.modules.invoice.service import InvoiceService
from syncpay.modules.payment.gateway_client import RazorpayClient
from syncpay.modules.payment.order_service import OrderService
from syncpay.modules.payment.reconciliation_service import ReconciliationService
from syncpay.repository.user_repository import user_repository
from syncpay.schemas import token_schema

# Tokens are issued by the external identity provider; a missing header is
# reported as our own 401 rather than FastAPI's default 403.
bearer_scheme = HTTPBearer(auto_error=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async for session in db_manager.get_db_session():
        yield session


# --- User Authentication ---

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> user_model.Users:
    """
    Dependency to get the current user from a bearer JWT.
    Decodes the token, looks the subject up in users and returns it.
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError()

    try:
        options = {"verify_aud": bool(settings.JWT_AUDIENCE)}
        payload = jwt.decode(
            credentials.credentials,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            audience=settings.JWT_AUDIENCE or None,
            options=options,
        )
        token_data = token_schema.TokenData(
            sub=payload.get("sub"),
            role=payload.get("role"),
            email=payload.get("email"),
        )
    except JWTError:
        raise UnauthorizedError("Could not validate credentials")

    if not token_data.sub:
        raise UnauthorizedError("Could not validate credentials")

    user = await user_repository.get_user(db, user_id=token_data.sub)
    if user is None:
        raise UnauthorizedError()
    return user


# --- Service providers ---

def get_gateway_config() -> GatewayConfig:
    return GatewayConfig.from_settings(settings)


def get_gateway_client(config: GatewayConfig = Depends(get_gateway_config)) -> RazorpayClient:
    if not config.key_id or not config.key_secret:
        raise ConfigurationError("Payment gateway is not configured")
    return RazorpayClient(config)


def get_order_service(
    gateway: RazorpayClient = Depends(get_gateway_client),
    config: GatewayConfig = Depends(get_gateway_config),
) -> OrderService:
    return OrderService(gateway, currency=config.currency)


def get_reconciliation_service(config: GatewayConfig = Depends(get_gateway_config)) -> ReconciliationService:
    return ReconciliationService(config.key_secret)


def get_invoice_service() -> InvoiceService:
    return InvoiceService(brand_name=settings.INVOICE_BRAND_NAME, support_email=settings.SUPPORT_EMAIL)
