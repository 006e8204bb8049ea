from .account import Account, AccountType
from .auditlog import AuditLog
from .company import Company
from .currency import Currency
from .dimension import PaymentMethod, Project, Vendor
from .sequence import CompanySequence
from .voucher import (ExpenseType, Voucher, VoucherLine, VoucherStatus,
                      VoucherType)
