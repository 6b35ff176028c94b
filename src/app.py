"""Storefront ordering FastAPI application.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload

Environment:
    PROTEAN_ENV          config overlay from ordering/domain.toml
    STRIPE_SECRET_KEY    use Stripe Checkout (fake gateway otherwise)
    STRIPE_WEBHOOK_SECRET
    STOCK_DATABASE_URL   use a standalone relational stock ledger (otherwise the
                         provider database when relational, else in-memory)
    APP_URL              storefront base URL for payment redirects
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
from ordering.domain import ordering

ordering.init()

from ordering.api.application import create_app  # noqa: E402
from ordering.config import CheckoutSettings  # noqa: E402
from ordering.services import build_services, gateway_from_settings, ledger_from_environment  # noqa: E402
from ordering.utils.logging import configure_logging  # noqa: E402

configure_logging()

_settings = CheckoutSettings.from_domain(ordering)

app = create_app(
    build_services(
        ledger=ledger_from_environment(ordering),
        gateway=gateway_from_settings(_settings),
        settings=_settings,
    )
)
