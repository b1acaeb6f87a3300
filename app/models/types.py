"""
Standard type definitions for database models.

Provides consistent types for monetary fields across all models.
"""

from sqlalchemy import DECIMAL

# Token amount type for rewards, prices and event amounts
# Precision: 36 digits total, 18 after decimal point
# Holds an 18-decimal token amount in human units without rounding
BigMoneyType = DECIMAL(36, 18)
