import logging

from django.db.models.signals import post_save
from django.dispatch import receiver

from payment.models import CommissionSettings, PayoutSettings

logger = logging.getLogger(__name__)


@receiver(post_save, sender=CommissionSettings)
def _deactivate_previous_commission_settings(sender, instance: CommissionSettings, **kwargs):
    if not instance.is_active:
        return
    deactivated = CommissionSettings.objects.filter(is_active=True).exclude(pk=instance.pk).update(is_active=False)
    if deactivated:
        logger.info("Commission settings v%s active, %s older version(s) deactivated", instance.version, deactivated)


@receiver(post_save, sender=PayoutSettings)
def _deactivate_previous_payout_settings(sender, instance: PayoutSettings, **kwargs):
    if not instance.is_active:
        return
    PayoutSettings.objects.filter(is_active=True).exclude(pk=instance.pk).update(is_active=False)
