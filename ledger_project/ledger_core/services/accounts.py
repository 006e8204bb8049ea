from typing import NamedTuple

from django.db.models import Count

from ..models import Account


class AccountInfo(NamedTuple):
    id: int
    code: str
    name: str
    ac_type: str
    is_active: bool
    is_leaf: bool


class AccountDirectory:
    """
    Read-only view of one company's chart of accounts, as the posting
    checks see it. Swap in any object with the same ``lookup_many`` to
    test posting rules without real accounts.
    """

    def __init__(self, company):
        self.company = company

    def _queryset(self):
        return (
            Account.objects.for_company(self.company)
            .annotate(child_count=Count("children"))
            .values("id", "code", "name", "ac_type", "is_active", "child_count")
        )

    @staticmethod
    def _info(row):
        return AccountInfo(
            id=row["id"],
            code=row["code"],
            name=row["name"],
            ac_type=row["ac_type"],
            is_active=row["is_active"],
            is_leaf=row["child_count"] == 0,
        )

    def lookup(self, account_id):
        """AccountInfo for ``account_id``, or None outside this company."""
        return self.lookup_many([account_id]).get(account_id)

    def lookup_many(self, account_ids):
        rows = self._queryset().filter(id__in=list(account_ids))
        return {row["id"]: self._info(row) for row in rows}
