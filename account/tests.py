from django.test import TestCase
from rest_framework.exceptions import ValidationError
from rest_framework.test import APIClient, APIRequestFactory

from account.models import PayoutMethod, User
from account.serializers import PayoutMethodSerializer


class UserModelTests(TestCase):
    def test_create_user_hashes_password(self):
        user = User.objects.create_user(
            email="user@example.com",
            password="Pass123!",
        )

        self.assertNotEqual(user.password, "Pass123!")
        self.assertTrue(user.check_password("Pass123!"))
        self.assertFalse(user.is_seller)

    def test_create_user_requires_email(self):
        with self.assertRaisesMessage(ValueError, "Users must have an email"):
            User.objects.create_user(email="", password="Pass123!")


class RegistrationTests(TestCase):
    def setUp(self):
        self.client = APIClient()

    def test_register_seller_sets_seller_role(self):
        response = self.client.post(
            "/auth/register-seller/",
            {"email": "seller@example.com", "password": "Pass123!", "store_name": "Acme"},
            format="json",
        )
        self.assertEqual(response.status_code, 201, response.data)
        user = User.objects.get(email="seller@example.com")
        self.assertEqual(user.role, "SELLER")
        self.assertTrue(user.check_password("Pass123!"))

    def test_register_customer_ignores_role_in_payload(self):
        response = self.client.post(
            "/auth/register/",
            {"email": "buyer@example.com", "password": "Pass123!", "role": "SELLER"},
            format="json",
        )
        self.assertEqual(response.status_code, 201, response.data)
        self.assertEqual(User.objects.get(email="buyer@example.com").role, "CUSTOMER")


class PayoutMethodSerializerTests(TestCase):
    def setUp(self):
        self.factory = APIRequestFactory()
        self.seller = User.objects.create_user(
            email="seller@example.com",
            password="Pass123!",
            role="SELLER",
        )
        self.customer = User.objects.create_user(
            email="customer@example.com",
            password="Pass123!",
            role="CUSTOMER",
        )

    def test_bank_transfer_requires_account_number(self):
        serializer = PayoutMethodSerializer(
            data={"method": "bank_transfer", "account_details": {"bank_name": "First Bank"}}
        )

        self.assertFalse(serializer.is_valid())
        self.assertIn("account_details", serializer.errors)

    def test_paypal_requires_email(self):
        serializer = PayoutMethodSerializer(
            data={"method": "paypal", "account_details": {"account_number": "123"}}
        )

        self.assertFalse(serializer.is_valid())
        self.assertIn("account_details", serializer.errors)

    def test_create_assigns_logged_in_seller(self):
        request = self.factory.post("/auth/payout-methods/")
        request.user = self.seller
        serializer = PayoutMethodSerializer(
            data={"method": "paypal", "account_details": {"email": "pay@example.com"}, "is_default": True},
            context={"request": request},
        )

        self.assertTrue(serializer.is_valid(), serializer.errors)
        method = serializer.save()

        self.assertEqual(method.seller, self.seller)
        self.assertTrue(method.is_default)
        self.assertEqual(method.get_identifier(), "pay@example.com")

    def test_customer_cannot_create_payout_method(self):
        request = self.factory.post("/auth/payout-methods/")
        request.user = self.customer
        serializer = PayoutMethodSerializer(
            data={"method": "paypal", "account_details": {"email": "pay@example.com"}},
            context={"request": request},
        )

        self.assertTrue(serializer.is_valid(), serializer.errors)
        with self.assertRaises(ValidationError):
            serializer.save()
        self.assertFalse(PayoutMethod.objects.exists())

    def test_new_default_replaces_previous_default(self):
        PayoutMethod.objects.create(
            seller=self.seller,
            method="bank_transfer",
            account_details={"account_number": "0001"},
            is_default=True,
        )
        request = self.factory.post("/auth/payout-methods/")
        request.user = self.seller
        serializer = PayoutMethodSerializer(
            data={"method": "stripe_connect", "account_details": {"account_id": "acct_1"}, "is_default": True},
            context={"request": request},
        )
        self.assertTrue(serializer.is_valid(), serializer.errors)
        serializer.save()

        defaults = PayoutMethod.objects.filter(seller=self.seller, is_default=True)
        self.assertEqual(defaults.count(), 1)
        self.assertEqual(defaults.first().method, "stripe_connect")
