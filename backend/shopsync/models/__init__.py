from .inventory import Category, Product
from .sales import Sale, SaleItem, Payment
from .customers import Customer, LoyaltyTransaction
from .loyalty import EarningRule, Promotion, CustomerTier, LoyaltySetting

__all__ = [
    'Category', 'Product',
    'Sale', 'SaleItem', 'Payment',
    'Customer', 'LoyaltyTransaction',
    'EarningRule', 'Promotion', 'CustomerTier', 'LoyaltySetting',
]
