import logging

from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver

from .media import discard_on_commit
from .models import (
    CustomizationImage,
    CustomizationItem,
    Order,
    OrderItem,
    Product,
    ProductImage,
)

logger = logging.getLogger(__name__)


# ==== FILE CLEANUP ====
# Rows own their files. Files go only after the deleting transaction
# commits, so a rolled back delete keeps them.

@receiver(post_delete, sender=Product)
def discard_product_image(sender, instance, **kwargs):
    discard_on_commit(instance.image)
    logger.info("Product '%s' (#%s) was deleted.", instance.name, instance.pk)

@receiver(post_delete, sender=ProductImage)
def discard_gallery_image(sender, instance, **kwargs):
    discard_on_commit(instance.image)

@receiver(post_delete, sender=CustomizationItem)
def discard_customization_item_image(sender, instance, **kwargs):
    discard_on_commit(instance.image)

@receiver(post_delete, sender=CustomizationImage)
def discard_customization_image(sender, instance, **kwargs):
    discard_on_commit(instance.image)

@receiver(post_delete, sender=Order)
def discard_order_file(sender, instance, **kwargs):
    discard_on_commit(instance.customized_file)

@receiver(post_delete, sender=OrderItem)
def discard_order_item_images(sender, instance, **kwargs):
    for path in instance.customization_images or []:
        discard_on_commit(path)


# ==== AUDIT LOG ====

@receiver(post_save, sender=Product)
def log_product_saved(sender, instance, created, **kwargs):
    action = "created" if created else "updated"
    logger.info("Product '%s' (#%s) was %s.", instance.name, instance.pk, action)

@receiver(post_save, sender=Order)
def log_order_saved(sender, instance, created, **kwargs):
    if created:
        logger.info("New order #%s was placed by %s.", instance.pk, instance.email)
    else:
        logger.info("Order #%s status is '%s'.", instance.pk, instance.status)
