from celery import shared_task

from .services.ledger import release_matured_earnings
from .services.payouts import PayoutService


@shared_task
def release_matured_earnings_task() -> dict:
    return release_matured_earnings()


@shared_task
def create_automatic_payouts_task() -> dict:
    return PayoutService.create_automatic_payouts()
