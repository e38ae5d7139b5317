# Models package — import all models here so Alembic can discover them.

from leadbook.models.user import User  # noqa: F401
from leadbook.models.buyer import Buyer  # noqa: F401
from leadbook.models.buyer_history import BuyerHistory  # noqa: F401
