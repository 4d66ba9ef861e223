import logging

from django.db import transaction
from django.db.models.functions import Length

from apps.audit.services import record_audit
from apps.common.exceptions import BusinessRuleError
from apps.common.money import round_usd
from apps.deposits.models import CustomerDeposit, DepositStatus, DepositWithdrawal
from apps.ledger.models import CashEntryType
from apps.ledger.services import post_cash_entry

logger = logging.getLogger(__name__)

DEPOSIT_PREFIX = "DEP-"


def next_deposit_number():
    last = (
        CustomerDeposit.objects.select_for_update()
        .order_by(Length("deposit_number").desc(), "-deposit_number")
        .values_list("deposit_number", flat=True)
        .first()
    )
    sequence = int(last[len(DEPOSIT_PREFIX):]) + 1 if last else 1
    return f"{DEPOSIT_PREFIX}{sequence:04d}"


def derive_deposit_status(original_afn, remaining_afn):
    if remaining_afn <= 0:
        return DepositStatus.WITHDRAWN
    if remaining_afn < original_afn:
        return DepositStatus.PARTIAL
    return DepositStatus.ACTIVE


def create_deposit(*, customer, amount_afn, notes="", user=None):
    amount_afn = round_usd(amount_afn)
    if amount_afn <= 0:
        raise BusinessRuleError("Deposit amount must be greater than 0.", fields={"amount_afn": ["Must be greater than 0."]})
    with transaction.atomic():
        deposit = CustomerDeposit.objects.create(
            deposit_number=next_deposit_number(),
            customer=customer,
            original_amount_afn=amount_afn,
            remaining_amount_afn=amount_afn,
            notes=notes,
            created_by=user,
        )
        post_cash_entry(
            entry_type=CashEntryType.DEPOSIT,
            amount_afn=amount_afn,
            reference_type="deposit",
            reference_id=deposit.id,
            description=f"Customer deposit from {customer.name}",
            user=user,
        )
        record_audit(
            actor=user,
            action="deposit.create",
            entity_type="deposit",
            entity_id=deposit.id,
            details={"deposit_number": deposit.deposit_number, "customer_id": customer.id, "amount_afn": amount_afn},
        )
    logger.info("Deposit %s of %s AFN taken from %s", deposit.deposit_number, amount_afn, customer.display_id)
    return deposit


def withdraw(*, deposit, amount_afn, notes="", user=None):
    amount_afn = round_usd(amount_afn)
    with transaction.atomic():
        deposit = CustomerDeposit.objects.select_for_update().select_related("customer").get(pk=deposit.pk)
        if deposit.status == DepositStatus.WITHDRAWN:
            raise BusinessRuleError("This deposit has been fully withdrawn.")
        if amount_afn <= 0:
            raise BusinessRuleError("Withdrawal amount must be greater than 0.", fields={"amount_afn": ["Must be greater than 0."]})
        if amount_afn > deposit.remaining_amount_afn:
            raise BusinessRuleError(
                "Withdrawal amount exceeds remaining balance.",
                fields={"amount_afn": [f"Remaining balance is {deposit.remaining_amount_afn} AFN."]},
            )

        withdrawal = DepositWithdrawal.objects.create(deposit=deposit, amount_afn=amount_afn, notes=notes, created_by=user)
        deposit.withdrawn_amount_afn = round_usd(deposit.withdrawn_amount_afn + amount_afn)
        deposit.remaining_amount_afn = round_usd(deposit.remaining_amount_afn - amount_afn)
        deposit.status = derive_deposit_status(deposit.original_amount_afn, deposit.remaining_amount_afn)
        deposit.save(update_fields=["withdrawn_amount_afn", "remaining_amount_afn", "status", "updated_at"])

        post_cash_entry(
            entry_type=CashEntryType.DEPOSIT_WITHDRAWAL,
            amount_afn=-amount_afn,
            reference_type="deposit",
            reference_id=deposit.id,
            description=f"Withdrawal by {deposit.customer.name} from {deposit.deposit_number}",
            user=user,
        )
        record_audit(
            actor=user,
            action="deposit.withdraw",
            entity_type="deposit",
            entity_id=deposit.id,
            details={
                "deposit_number": deposit.deposit_number,
                "amount_afn": amount_afn,
                "remaining_amount_afn": deposit.remaining_amount_afn,
            },
        )
    return deposit, withdrawal
