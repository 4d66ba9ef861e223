from django.db import transaction

from apps.audit.services import record_audit
from apps.ledger.models import CashEntryType
from apps.ledger.services import post_cash_entry


def _snapshot(expense):
    return {
        "category": expense.category,
        "description": expense.description,
        "amount": expense.amount,
        "expense_date": expense.expense_date,
    }


def create_expense(*, serializer, user):
    with transaction.atomic():
        expense = serializer.save(created_by=user)
        post_cash_entry(
            entry_type=CashEntryType.EXPENSE,
            amount_afn=-expense.amount,
            reference_type="expense",
            reference_id=expense.id,
            description=f"Expense: {expense.description}",
            user=user,
        )
        record_audit(
            actor=user,
            action="expenses.create",
            entity_type="expense",
            entity_id=expense.id,
            details=_snapshot(expense),
        )
    return expense


def update_expense(*, serializer, user):
    with transaction.atomic():
        before = _snapshot(serializer.instance)
        previous_amount = serializer.instance.amount
        expense = serializer.save()
        post_cash_entry(
            entry_type=CashEntryType.EXPENSE,
            amount_afn=previous_amount - expense.amount,
            reference_type="expense",
            reference_id=expense.id,
            description=f"Expense amount changed: {expense.description}",
            user=user,
        )
        record_audit(
            actor=user,
            action="expenses.update",
            entity_type="expense",
            entity_id=expense.id,
            details={"before": before, "after": _snapshot(expense)},
        )
    return expense


def delete_expense(*, expense, user):
    with transaction.atomic():
        post_cash_entry(
            entry_type=CashEntryType.EXPENSE_REVERSAL,
            amount_afn=expense.amount,
            reference_type="expense",
            reference_id=expense.id,
            description=f"Expense deleted: {expense.description}",
            user=user,
        )
        record_audit(
            actor=user,
            action="expenses.delete",
            entity_type="expense",
            entity_id=expense.id,
            details=_snapshot(expense),
        )
        expense.delete()
