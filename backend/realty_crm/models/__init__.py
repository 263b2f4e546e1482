from .auth import User, SessionToken
from .inventory import InventoryUnit, Plot, PlotAssignment, InventoryRequest, InventoryRequestPlot
from .funding import Investor, InventoryPayment
from .deals import Customer, Deal, DealPlot
from .ledger import LedgerEvent

__all__ = [
    'User', 'SessionToken',
    'InventoryUnit', 'Plot', 'PlotAssignment', 'InventoryRequest', 'InventoryRequestPlot',
    'Investor', 'InventoryPayment',
    'Customer', 'Deal', 'DealPlot',
    'LedgerEvent',
]
