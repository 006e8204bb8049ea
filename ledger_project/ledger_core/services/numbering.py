from django.db import IntegrityError, transaction

from ..conf import voucher_number_width, voucher_prefix
from ..models import CompanySequence


def _next_company_sequence(company, name: str) -> int:
    """
    Allocate the next sequence value for a company/name pair.
    Uses select_for_update to avoid concurrent duplicates.
    """
    with transaction.atomic():
        try:
            seq = CompanySequence.objects.select_for_update().get(
                company=company, name=name,
            )
        except CompanySequence.DoesNotExist:
            try:
                # savepoint: a losing racer must not poison the outer txn
                with transaction.atomic():
                    seq = CompanySequence.objects.create(
                        company=company, name=name, next_value=1,
                    )
            except IntegrityError:
                seq = CompanySequence.objects.select_for_update().get(
                    company=company, name=name,
                )

        value = seq.next_value
        seq.next_value = value + 1
        seq.save(update_fields=["next_value"])
    return value


def next_voucher_number(company, date) -> str:
    """V-YYYY-NNNNNN, counting from 1 per company and calendar year."""
    value = _next_company_sequence(company, f"voucher:{date.year}")
    return f"{voucher_prefix()}-{date.year}-{value:0{voucher_number_width()}d}"
