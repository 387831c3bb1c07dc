"""
Domain mapping: repaired row fields → ParsedTransaction.

No network or file I/O. The only side effect is registering discovered
account names and category identities in the sets passed in by the caller.
"""

from datetime import date

from ..schemas.transaction import CategoryKey, EntryKind, ParsedTransaction

PERSON_LABEL = "👤"
GROUP_LABEL = "👥"


def build_payee_name(counter_account: str = "", person: str = "", group: str = "") -> str:
    """
    Payee display name.

    Precedence: counter account name, person label, group label, empty.
    """
    if counter_account:
        return counter_account
    if person:
        return f"{PERSON_LABEL} {person}"
    if group:
        return f"{GROUP_LABEL} {group}"
    return ""


def map_row(
    tx_date: date,
    amount: int,
    kind: EntryKind,
    import_identity: str,
    *,
    category: str = "",
    account_name: str,
    counter_account_name: str = "",
    person: str = "",
    group: str = "",
    notes: str = "",
    accounts: set[str] | None = None,
    categories: set[CategoryKey] | None = None,
) -> ParsedTransaction:
    """Build a ParsedTransaction and register its accounts and category."""
    if accounts is not None:
        if account_name:
            accounts.add(account_name)
        if counter_account_name:
            accounts.add(counter_account_name)

    # a linked transfer books no category; only one without a counter account
    # is downgraded to an expense and needs its expense category
    needs_category = kind is not EntryKind.TRANSFER or not counter_account_name
    if categories is not None and category and needs_category:
        categories.add(CategoryKey.for_kind(category, kind))

    return ParsedTransaction(
        date=tx_date,
        amount=amount,
        entry_kind=kind,
        account_name=account_name,
        import_identity=import_identity,
        category=category,
        counter_account_name=counter_account_name,
        payee_name=build_payee_name(counter_account_name, person, group),
        notes=notes,
    )
