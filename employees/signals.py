from django.contrib.auth import get_user_model
from django.db.models.signals import post_save
from django.dispatch import receiver
from .models import Employee


@receiver(post_save, sender=Employee)
def sync_employee_to_user(sender, instance, created, **kwargs):
    """
    Sync common fields from Employee to User when Employee is updated.
    """
    if instance.user_id:
        user = instance.user
        updates = {}
        if user.first_name != instance.first_name:
            updates['first_name'] = instance.first_name
        if user.last_name != instance.last_name:
            updates['last_name'] = instance.last_name
        if user.email != instance.email:
            updates['email'] = instance.email

        if updates:
            get_user_model().objects.filter(id=user.id).update(**updates)
