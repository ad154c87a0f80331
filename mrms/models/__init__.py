"""Central model registry — import all models so Alembic autodiscover works."""

from mrms.database import Base  # noqa: F401

from mrms.models.user import User, user_sites  # noqa: F401
from mrms.models.site import Site  # noqa: F401
from mrms.models.vendor import Vendor  # noqa: F401
from mrms.models.inventory import InventoryItem, inventory_vendors  # noqa: F401
from mrms.models.request import MaterialRequest  # noqa: F401
from mrms.models.cost_comparison import CostComparison, VendorQuote  # noqa: F401
from mrms.models.purchase_order import PurchaseOrder  # noqa: F401
from mrms.models.request_note import RequestNote  # noqa: F401
