from django.contrib.auth import get_user_model
from django.test import TestCase

from apps.accounts.models import Role

User = get_user_model()


class UserRoleTests(TestCase):
    def test_customer_is_not_order_staff(self):
        user = User.objects.create_user(email="Shopper@Example.com", password="testpass123")
        self.assertEqual(user.email, "Shopper@example.com")
        self.assertEqual(user.role, Role.CUSTOMER)
        self.assertFalse(user.is_order_staff)

    def test_manager_and_admin_are_order_staff(self):
        for role in (Role.MANAGER, Role.ADMIN):
            user = User.objects.create_user(email=f"{role}@example.com", role=role)
            self.assertTrue(user.is_order_staff)
            self.assertFalse(user.has_usable_password())

    def test_superuser(self):
        user = User.objects.create_superuser(email="root@example.com", password="testpass123")
        self.assertEqual(user.role, Role.ADMIN)
        self.assertTrue(user.is_order_staff)

    def test_email_required(self):
        with self.assertRaises(ValueError):
            User.objects.create_user(email="")
